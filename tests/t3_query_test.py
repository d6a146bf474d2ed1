import unittest
from copy import copy

from docquery import DocQuery, DocQuerySettingsDict, Reusable, Principal, RunningBalanceSettings, parse_query_string
from docquery.exc import InvalidQueryError, InvalidQuerySyntaxError, DisabledError


def cond(field, operator, value):
    return dict(field=field, operator=operator, value=value)


class QueryTest(unittest.TestCase):
    """ Test DocQuery: Query Object to pipeline """

    longMessage = True
    maxDiff = None

    def test_parse_query_string(self):
        # === Test: empty
        self.assertEqual(parse_query_string(None), {})
        self.assertEqual(parse_query_string(''), {})

        # === Test: object
        self.assertEqual(parse_query_string('{"limitCount": 5}'), {'limitCount': 5})

        # === Test: invalid
        with self.assertRaises(InvalidQuerySyntaxError):
            parse_query_string('{limitCount: 5}')
        with self.assertRaises(InvalidQuerySyntaxError):
            parse_query_string('[1, 2]')
        with self.assertRaises(InvalidQuerySyntaxError):
            parse_query_string('"text"')

        # It's an InvalidQueryError, too
        with self.assertRaises(InvalidQueryError):
            parse_query_string('{')

    def test_pipeline(self):
        # === Test: empty query
        p = DocQuery('users').query().end()
        self.assertEqual(p.stages, [{'$match': {}}, {'$sort': {'_id': -1}}])
        self.assertEqual(p.filter, {})
        self.assertEqual(p.sort, {'_id': -1})
        self.assertIsNone(p.skip)
        self.assertIsNone(p.limit)

        # end() without query() is the same
        self.assertEqual(DocQuery('users').end().stages, [{'$match': {}}, {'$sort': {'_id': -1}}])

        # === Test: everything
        p = DocQuery('users').query(
            conditions=[cond('age', '>=', '18'), cond('age', '<', '30')],
            orderByField='age',
            orderDirection='asc',
            limitCount=10,
            offsetCount='20',
        ).end()
        self.assertEqual(p.stages, [
            {'$match': {'age': {'$gte': 18, '$lt': 30}}},
            {'$sort': {'age': 1}},
            {'$skip': 20},
            {'$limit': 10},
        ])
        self.assertEqual(p.filter, {'age': {'$gte': 18, '$lt': 30}})
        self.assertEqual(p.count_filter, p.filter)  # no running balance: nothing more
        self.assertEqual((p.skip, p.limit), (20, 10))

        # === Test: metadata
        self.assertEqual(p.metadata(100), {'total': 100, 'limit': 10, 'offset': 20})
        p = DocQuery('users').query().end()
        self.assertEqual(p.metadata(100), {'total': 100, 'limit': 100, 'offset': 0})

    def test_running_balance_pipeline(self):
        settings = DocQuerySettingsDict(running_balance=RunningBalanceSettings())
        u1 = Principal('u1')

        # === Test: the balance goes before the filter
        p = DocQuery('transactions', settings).with_principal(u1).query(
            conditions=[cond('date', '>=', '2024-01-01')],
            orderByField='date',
        ).end()
        ops = [list(stage)[0] for stage in p.stages]
        self.assertEqual(ops, ['$match', '$addFields', '$setWindowFields', '$addFields', '$project',
                               '$match', '$sort'])
        self.assertEqual(p.stages[0], {'$match': {'userId': 'u1'}})  # scope: the principal only
        self.assertEqual(p.stages[5], {'$match': {'date': {'$gte': '2024-01-01'}}})  # the filter, in full
        self.assertEqual(p.filter, {'date': {'$gte': '2024-01-01'}})
        self.assertEqual(p.count_filter, {'userId': 'u1', 'date': {'$gte': '2024-01-01'}})  # what the pipeline returns

        # === Test: account scope
        p = DocQuery('transactions', settings).with_principal(u1).query(
            conditions=[cond('accountId', '==', 'a1'), cond('amount', '<', 0)],
        ).end()
        self.assertEqual(p.stages[0], {'$match': {'userId': 'u1', 'accountId': 'a1'}})
        self.assertEqual(p.stages[5], {'$match': {'accountId': 'a1', 'amount': {'$lt': 0}}})
        self.assertEqual(p.count_filter, {'userId': 'u1', 'accountId': 'a1', 'amount': {'$lt': 0}})

        # Not a plain equality: not a scope
        p = DocQuery('transactions', settings).with_principal(u1).query(
            conditions=[cond('accountId', 'in', ['a1', 'a2'])],
        ).end()
        self.assertEqual(p.stages[0], {'$match': {'userId': 'u1'}})

        # === Test: no principal, no account: no scope at all
        p = DocQuery('transactions', settings).query().end()
        self.assertEqual(list(p.stages[0]), ['$addFields'])

        # === Test: disabled
        p = DocQuery('transactions', settings.and_more(balance_enabled=False)).with_principal(u1).query().end()
        self.assertEqual(p.stages, [{'$match': {}}, {'$sort': {'_id': -1}}])
        self.assertEqual(p.count_filter, {})

    def test_unknown_keys(self):
        # === Test: lenient: ignored
        with self.assertLogs('docquery.query', 'WARNING'):
            p = DocQuery('users').query(project=['a'], limitCount=5).end()
        self.assertEqual(p.limit, 5)

        # === Test: strict: error
        with self.assertRaises(InvalidQueryError):
            DocQuery('users', dict(lenient=False)).query(project=['a'])

        # 'balance' is not a Query Object key
        with self.assertRaises(InvalidQueryError):
            DocQuery('users', dict(lenient=False)).query(balance=True)

        # === Test: keys that look like argument names are just unknown keys
        with self.assertLogs('docquery.query', 'WARNING'):
            p = DocQuery('users').query(**{'self': 1, 'limitCount': 5}).end()
        self.assertEqual(p.limit, 5)
        with self.assertRaises(InvalidQueryError):
            DocQuery('users', dict(lenient=False)).query(**{'self': 1})

        # === Test: a section that is not an object: defaults
        p = DocQuery('users').query(sort='x', limit='y').end()
        self.assertEqual(p.stages, [{'$match': {}}, {'$sort': {'_id': -1}}])

    def test_disabled_handlers(self):
        dq = lambda: DocQuery('users', dict(sort_enabled=False, max_items=50))

        # === Test: input to a disabled handler
        with self.assertRaises(DisabledError):
            dq().query(orderByField='age')

        # === Test: defaults still apply
        p = dq().query(limitCount=10).end()
        self.assertEqual(p.stages, [{'$match': {}}, {'$sort': {'_id': -1}}, {'$limit': 10}])

    def test_settings(self):
        # === Test: a typo
        with self.assertRaises(KeyError):
            DocQuery('users', dict(max_itemz=10))

        # === Test: settings are given to handlers
        dq = DocQuery('users', DocQuerySettingsDict(max_items=10, default_sort_field='name', owner_field='ownerId'))
        self.assertEqual(dq.handler_limit.max_items, 10)
        self.assertEqual(dq.handler_sort.default_sort_field, 'name')
        self.assertEqual(dq.handler_filter.owner_field, 'ownerId')
        self.assertEqual(dq.handler_balance.owner_field, 'ownerId')

        # === Test: lenient is shared
        dq = DocQuery('users', dict(lenient=False))
        self.assertFalse(dq.lenient)
        self.assertFalse(dq.handler_filter.lenient)
        self.assertFalse(dq.handler_sort.lenient)
        self.assertFalse(dq.handler_limit.lenient)

    def test_reusable(self):
        dq = Reusable(DocQuery('notes'))

        # Every query is independent
        p1 = dq.with_principal(Principal('u1')).query(conditions=[cond('userId', '==', 'x')]).end()
        p2 = dq.with_principal(Principal('u2')).query(conditions=[cond('userId', '==', 'x')], limitCount=3).end()
        p3 = dq.query().end()
        self.assertEqual(p1.filter, {'userId': 'u1'})
        self.assertEqual(p2.filter, {'userId': 'u2'})
        self.assertEqual(p3.filter, {})
        self.assertIsNone(p1.limit)
        self.assertEqual(p2.limit, 3)

        # === Test: copy() does not share the principal
        original = DocQuery('notes').with_principal(Principal('u1'))
        self.assertIsNone(copy(original).principal)

    def test_input_is_not_modified(self):
        query_object = {'conditions': [cond('a', '==', '1')], 'limitCount': 5}
        DocQuery('users').query(**query_object).end()
        self.assertEqual(query_object, {'conditions': [cond('a', '==', '1')], 'limitCount': 5})
