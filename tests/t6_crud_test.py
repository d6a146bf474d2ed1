import json
import unittest
from datetime import datetime

from flask import Flask, g
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from docquery import CollectionCrudHelper, DocQuery, Principal, init_registry
from docquery.exc import InvalidQueryError, DisabledError

from .crud_view import init_app
from .memstore import MemoryDocumentStore


class CrudTestBase(unittest.TestCase):
    def setUp(self):
        # Init store
        self.store = MemoryDocumentStore(
            users=[
                dict(id='1', userId='u1', name='Alice', age=25, tags=['react', 'nodejs']),
                dict(id='2', userId='u1', name='Bob', age=35, tags=['vue']),
                dict(id='3', userId='u2', name='Carol', age=45, tags=[]),
            ],
            transactions=[
                dict(id='t1', userId='u1', accountId='a1', date='2024-01-01', amount=10.10),
                dict(id='t2', userId='u1', accountId='a1', date='2024-01-02', amount=-0.05),
                dict(id='t3', userId='u1', accountId='a1', date='2024-01-03', amount=5.00),
            ],
        )

        # Init db
        self.engine = create_engine('sqlite://')
        init_registry(self.engine)
        self.db = sessionmaker(bind=self.engine)()

        # Flask
        self.app = app = Flask(__name__)
        app.debug = app.testing = True
        init_app(app)

        @app.before_request
        def db():
            g.db = self.db
            g.store = self.store

        self.client = app.test_client()

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def get_list(self, collection_name, user_id='u1', **query_object):
        res = self.client.get('/data/' + collection_name,
                              query_string={'query': json.dumps(query_object)},
                              headers={'X-User-Id': user_id})
        self.assertEqual(res.status_code, 200, res.get_data(as_text=True))
        return res.get_json()


class CrudHelperTest(unittest.TestCase):
    """ Test CollectionCrudHelper """

    def test_crudhelper(self):
        ch = CollectionCrudHelper(max_items=10)

        # === Test: new_document()
        doc = ch.new_document({'name': 'a', '_id': 'x'})
        self.assertEqual(len(doc['id']), 32)
        self.assertNotIn('_id', doc)
        self.assertIsInstance(doc['createdAt'], datetime)
        self.assertEqual(doc['createdAt'], doc['updatedAt'])

        # id is kept when given
        self.assertEqual(ch.new_document({'id': 'mine'})['id'], 'mine')

        # === Test: update_payload()
        fields = ch.update_payload({'id': 'x', '_id': 'y', 'createdAt': 'z', 'name': 'b'})
        self.assertEqual(set(fields), {'name', 'updatedAt'})

        # === Test: no timestamps
        ch = CollectionCrudHelper(timestamps=False)
        self.assertEqual(set(ch.new_document({'a': 1})), {'a', 'id'})
        self.assertEqual(ch.update_payload({'a': 1}), {'a': 1})

        # === Test: invalid input
        with self.assertRaises(InvalidQueryError):
            ch.new_document(['a'])
        with self.assertRaises(InvalidQueryError):
            ch.new_documents([])
        with self.assertRaises(InvalidQueryError):
            ch.new_documents({'a': 1})
        with self.assertRaises(InvalidQueryError):
            ch.update_payload('a')

    def test_query_collection(self):
        ch = CollectionCrudHelper(max_items=10, settings_for={'big': dict(max_items=1000)})

        # === Test: per-collection settings
        self.assertEqual(ch.query_collection('users').end().limit, 10)
        self.assertEqual(ch.query_collection('big', {'limitCount': 500}).end().limit, 500)

        # === Test: DocQuery objects are reused
        self.assertIs(ch.reusable_docquery('users'), ch.reusable_docquery('users'))
        self.assertIsInstance(ch.query_collection('users'), DocQuery)

        # === Test: principal
        p = ch.query_collection('users', {'conditions': [{'field': 'userId', 'operator': '==', 'value': 'x'}]},
                                Principal('u9')).end()
        self.assertEqual(p.filter, {'userId': 'u9'})

        # === Test: transactions have a running balance out of the box
        stages = CollectionCrudHelper().query_collection('transactions').end().stages
        self.assertIn('$setWindowFields', [list(s)[0] for s in stages])

        # === Test: invalid
        with self.assertRaises(InvalidQueryError):
            ch.query_collection('users', ['a'])
        with self.assertRaises(InvalidQueryError):
            ch.query_collection('$cmd')
        with self.assertRaises(InvalidQueryError):
            ch.query_collection('')

        # === Test: disabled
        with self.assertRaises(DisabledError):
            CollectionCrudHelper(sort_enabled=False).query_collection('users', {'orderByField': 'age'})


class CollectionViewTest(CrudTestBase):
    """ Test CollectionViewMixin """

    def test_list(self):
        # === Test: everything
        res = self.get_list('users')
        self.assertEqual([d['id'] for d in res['data']], ['3', '2', '1'])  # newest first
        self.assertEqual(res['metadata'], {'total': 3, 'limit': 100, 'offset': 0})  # max_items

        # === Test: filter, sort
        res = self.get_list('users',
                            conditions=[{'field': 'age', 'operator': '>', 'value': '30'}],
                            orderByField='age', orderDirection='asc')
        self.assertEqual([d['name'] for d in res['data']], ['Bob', 'Carol'])
        self.assertEqual(res['metadata']['total'], 2)

        # === Test: array-contains-any
        res = self.get_list('users', conditions=[
            {'field': 'tags', 'operator': 'array-contains-any', 'value': ['react', 'vue']}])
        self.assertEqual({d['name'] for d in res['data']}, {'Alice', 'Bob'})

        # === Test: like
        res = self.get_list('users', conditions=[{'field': 'name', 'operator': 'like', 'value': 'aro'}])
        self.assertEqual([d['name'] for d in res['data']], ['Carol'])

        # === Test: pagination: total is not affected
        res = self.get_list('users', orderByField='age', orderDirection='asc', limitCount=1, offsetCount=1)
        self.assertEqual([d['name'] for d in res['data']], ['Bob'])
        self.assertEqual(res['metadata'], {'total': 3, 'limit': 1, 'offset': 1})

        # === Test: the owner field
        res = self.get_list('users', user_id='u2', conditions=[{'field': 'userId', 'operator': '==', 'value': 'u1'}])
        self.assertEqual([d['name'] for d in res['data']], ['Carol'])

        # === Test: malformed conditions are dropped
        res = self.get_list('users', conditions=[{'field': 'age'}])
        self.assertEqual(res['metadata']['total'], 3)

    def test_list_balance(self):
        res = self.get_list('transactions',
                            conditions=[{'field': 'userId', 'operator': '==', 'value': ''},
                                        {'field': 'date', 'operator': '>=', 'value': '2024-01-02'}],
                            orderByField='date', orderDirection='asc')
        self.assertEqual([(d['id'], d['balance']) for d in res['data']], [('t2', 10.05), ('t3', 15.05)])
        self.assertEqual(res['metadata']['total'], 2)

        # === Test: other users' transactions are not counted
        self.store.insert_many('transactions', [
            dict(id='t4', userId='u2', accountId='a9', date='2024-01-01', amount=1),
            dict(id='t5', userId='u2', accountId='a9', date='2024-01-02', amount=2),
        ])
        res = self.get_list('transactions')
        self.assertEqual([d['id'] for d in res['data']], ['t3', 't2', 't1'])
        self.assertEqual(res['metadata'], {'total': 3, 'limit': 100, 'offset': 0})

        res = self.get_list('transactions', user_id='u2')
        self.assertEqual([d['id'] for d in res['data']], ['t5', 't4'])
        self.assertEqual(res['metadata']['total'], 2)

    def test_list_errors(self):
        # === Test: not JSON
        res = self.client.get('/data/users', query_string={'query': '{oops'})
        self.assertEqual(res.status_code, 400)
        self.assertIn('not valid JSON', res.get_json()['msg'])

        # === Test: not an object
        res = self.client.get('/data/users', query_string={'query': '[]'})
        self.assertEqual(res.status_code, 400)

        # === Test: no query at all
        res = self.client.get('/data/users')
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.get_json()['metadata']['total'], 3)

    def test_get(self):
        res = self.client.get('/data/users/2')
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.get_json()['name'], 'Bob')
        self.assertNotIn('_id', res.get_json())

        res = self.client.get('/data/users/99')
        self.assertEqual(res.status_code, 404)
        self.assertIn('not found', res.get_json()['msg'])

    def test_create(self):
        # === Test: create
        res = self.client.post('/data/users', json={'name': 'Dave', 'age': 55})
        self.assertEqual(res.status_code, 201)
        created = res.get_json()
        self.assertEqual(created['name'], 'Dave')
        self.assertIn('id', created)
        self.assertIn('createdAt', created)
        self.assertIn('updatedAt', created)

        # It's there
        res = self.client.get('/data/users/' + created['id'])
        self.assertEqual(res.get_json()['name'], 'Dave')

        # === Test: hook failure
        with self.assertRaises(RuntimeError):
            self.client.post('/data/users', json={'title': 'z'})

        # === Test: not an object
        res = self.client.post('/data/users', json=[1, 2])
        self.assertEqual(res.status_code, 400)

    def test_create_many(self):
        res = self.client.post('/data/users/batch', json=[{'name': 'Dave'}, {'id': 'e', 'name': 'Eve'}])
        self.assertEqual(res.status_code, 201)
        created = res.get_json()
        self.assertEqual([d['name'] for d in created], ['Dave', 'Eve'])
        self.assertEqual(created[1]['id'], 'e')
        self.assertEqual(self.store.count('users', {}), 5)

        # === Test: invalid
        self.assertEqual(self.client.post('/data/users/batch', json=[]).status_code, 400)
        self.assertEqual(self.client.post('/data/users/batch', json={'name': 'Dave'}).status_code, 400)
        self.assertEqual(self.client.post('/data/users/batch', json=['Dave']).status_code, 400)

    def test_update(self):
        # === Test: update
        res = self.client.put('/data/users/2', json={'age': 36, 'id': 'hacked', '_id': 'hacked'})
        self.assertEqual(res.status_code, 200)
        updated = res.get_json()
        self.assertEqual(updated['age'], 36)
        self.assertEqual(updated['id'], '2')
        self.assertEqual(updated['name'], 'Bob')
        self.assertIn('updatedAt', updated)

        # === Test: not found
        res = self.client.put('/data/users/99', json={'age': 1})
        self.assertEqual(res.status_code, 404)

    def test_delete(self):
        res = self.client.delete('/data/users/2')
        self.assertEqual(res.status_code, 204)
        self.assertEqual(self.client.get('/data/users/2').status_code, 404)

        res = self.client.delete('/data/users/2')
        self.assertEqual(res.status_code, 404)

    def test_delete_many(self):
        res = self.client.delete('/data/users/batch', json={'ids': ['1', '99', '3']})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.get_json(), {
            'successCount': 2,
            'errors': [{'id': '99', 'error': 'Not found'}],
        })
        self.assertEqual(self.store.count('users', {}), 1)

        # === Test: invalid
        self.assertEqual(self.client.delete('/data/users/batch', json={'ids': []}).status_code, 400)
        self.assertEqual(self.client.delete('/data/users/batch', json={}).status_code, 400)
        self.assertEqual(self.client.delete('/data/users/batch').status_code, 400)


class NamedQueryViewTest(CrudTestBase):
    """ Test NamedQueryViewMixin """

    def test_named_queries(self):
        body = {
            'name': 'adults',
            'collectionName': 'users',
            'pipeline': [{'$match': {'age': {'$gte': '{{minAge}}'}}}, {'$project': {'name': 1}}],
            'description': 'Users above some age',
        }

        # === Test: register
        res = self.client.post('/queries', json=body)
        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.get_json()['collectionName'], 'users')

        # Again: updated
        res = self.client.post('/queries', json=body)
        self.assertEqual(res.status_code, 200)

        # Invalid
        res = self.client.post('/queries', json={'name': 'x'})
        self.assertEqual(res.status_code, 400)

        # === Test: list
        res = self.client.get('/queries')
        self.assertEqual([q['name'] for q in res.get_json()], ['adults'])
        self.assertNotIn('pipeline', res.get_json()[0])

        # === Test: get
        res = self.client.get('/queries/adults')
        self.assertEqual(res.get_json()['pipeline'], body['pipeline'])
        self.assertEqual(self.client.get('/queries/nope').status_code, 404)

        # === Test: execute
        res = self.client.post('/queries/adults/execute', json={
            'params': {'minAge': 30},
            'options': {'sort': {'name': -1}},
        })
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.get_json()['result'], [{'name': 'Carol'}, {'name': 'Bob'}])
        self.assertEqual(res.get_json()['metadata']['total'], 2)
        self.assertEqual(res.get_json()['metadata']['queryName'], 'adults')

        # Invalid
        res = self.client.post('/queries/adults/execute', json={'params': [1]})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(self.client.post('/queries/nope/execute', json={}).status_code, 404)

        # === Test: delete
        res = self.client.delete('/queries/adults')
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.get_json()['deletedQuery']['name'], 'adults')
        self.assertEqual(self.client.delete('/queries/adults').status_code, 404)
        self.assertEqual(self.client.get('/queries').get_json(), [])
