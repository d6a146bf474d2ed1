"""
### Filter Operation
Filtering corresponds to the `$match` stage of the pipeline.

DocQuery-powered API endpoints would typically return the list of *all* documents in a collection,
and leave it up to the API user to filter them the way they like.

Example of filtering:

```javascript
$.get('/data/users?query=' + JSON.stringify({
    // all conditions are AND-ed together
    conditions: [
        {field: 'age', operator: '>=', value: 18},
        {field: 'age', operator: '<=', value: 25},  // merged: age 18..25
        {field: 'sex', operator: '==', value: 'female'},
    ]
}))
```

String values are coerced: `"25"` becomes `25`, `"true"` and `"false"` become booleans.
This is because the UI often only has strings at hand.

#### Operators

* `==` - equality check: `{field: value}`. If the field already has other operators, it's merged as `$eq`.
* `!=`, `>`, `>=`, `<`, `<=` - comparison: `$ne`, `$gt`, `$gte`, `$lt`, `$lte`.
    Multiple operators on one field are merged: `{age: {$gt: 25, $lt: 50}}`
* `in`, `nin` - any of / none of. A scalar value is wrapped into a one-element array.
* `array-contains` - the array field contains the value: `{tags: 'nodejs'}`
* `array-contains-any` - the array field contains any of the values: `{tags: {$in: [...]}}`
* `exists` - the field is present: `{field: {$exists: true}}`
* `regex` - case-insensitive regular expression. Replaces any other condition on the field.
* `like` - case-insensitive substring match. The value is escaped, so `"a.b"` matches only a literal `a.b`.
    Replaces any other condition on the field.

Any other operator is treated as equality.

#### Ownership field

The field that identifies the owner of a document (`userId`, by default) is special:
whatever value the API user provides, it's replaced with the id of the authenticated user.
Nobody can filter on someone else's documents this way.

#### Malformed conditions

A condition without a `field`, an `operator`, or a `value` is skipped, and a warning is logged.
With `lenient=False`, it raises an `InvalidQueryError` instead.
"""

import logging
import math
import re
from functools import reduce

from .base import DocQueryHandlerBase
from ..exc import InvalidQueryError

logger = logging.getLogger(__name__)


# region Value coercion

def _is_array(value):
    return isinstance(value, (list, tuple, set, frozenset))


def coerce_value(value):
    """ Coerce a string value that came from the UI into a number or a boolean

        * A string that fully parses as a finite number becomes an `int` or a `float`
        * 'true' and 'false' become booleans
        * Everything else is left untouched
    """
    if not isinstance(value, str):
        return value

    if value == 'true':
        return True
    if value == 'false':
        return False

    number = _parse_number(value)
    return value if number is None else number


def _parse_number(text: str):
    """ Parse a string as a finite number; `None` if it's not one """
    text = text.strip()
    if not text or '_' in text or not text.isascii():  # Python allows '1_000' and non-ASCII digits; JSON clients do not
        return None

    try:
        return int(text)
    except ValueError:
        pass

    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None

# endregion


# region Condition Expression Classes

class Predicate(dict):
    """ A compiled predicate for one field: {operator: value}

        Is a separate class to tell it apart from a plain dict value that a field is compared to.
        A Predicate is never modified in place: merging makes a new one.
    """

    def merged(self, operator_str, value):
        """ Make a new Predicate with one more operator """
        return Predicate({**self, operator_str: value})


class _ABSENT_TYPE:
    """ Marker: the field has no filter yet """
    def __repr__(self):
        return '-'

    def __bool__(self):
        return False


ABSENT = _ABSENT_TYPE()


class ConditionExpressionBase:
    """ A parsed condition: one (field, operator, value) triple """

    __slots__ = ('field', 'operator_str', 'mongo_operator', 'value')

    #: Coerce string values? (see coerce_value())
    coerce = True

    def __init__(self, field, operator_str, mongo_operator, value):
        self.field = field
        self.operator_str = operator_str
        self.mongo_operator = mongo_operator
        self.value = coerce_value(value) if self.coerce else value

    def __repr__(self):
        return '{} {} {!r}'.format(self.field, self.operator_str, self.value)

    def merge_into(self, current):
        """ Merge this condition into the current filter value of the field

            :param current: ABSENT, a scalar value, or a Predicate
            :return: The new filter value for the field
        """
        raise NotImplementedError()

    def get_final_input_value(self):
        return dict(field=self.field, operator=self.operator_str, value=self.value)


class EqualityExpression(ConditionExpressionBase):
    """ '==': a direct value, unless the field already has a predicate: then, $eq """

    def merge_into(self, current):
        if isinstance(current, Predicate):
            return current.merged(self.mongo_operator, self.value)
        return self.value


class OperatorExpression(ConditionExpressionBase):
    """ Comparison operators: merged into the field's predicate """

    def merge_into(self, current):
        if current is ABSENT:
            current = Predicate()
        elif not isinstance(current, Predicate):
            # A direct value was there: keep it as $eq
            current = Predicate({'$eq': current})
        return current.merged(self.mongo_operator, self.value)


class MembershipExpression(OperatorExpression):
    """ 'in', 'nin', 'array-contains-any': operators with an array argument """

    def __init__(self, field, operator_str, mongo_operator, value):
        super(MembershipExpression, self).__init__(field, operator_str, mongo_operator, value)
        if not _is_array(self.value):
            self.value = [self.value]
        else:
            self.value = list(self.value)


class DirectValueExpression(ConditionExpressionBase):
    """ 'array-contains', or an unknown operator: the field is set to the value, replacing everything """

    def merge_into(self, current):
        return self.value


class OwnerExpression(DirectValueExpression):
    """ The owner field: always equal to the principal's id. Ids are strings, even when they look like numbers """

    coerce = False


class RegexExpression(ConditionExpressionBase):
    """ 'regex': case-insensitive pattern match, replacing everything on the field """

    coerce = False

    def compile_pattern(self):
        return self.value

    def merge_into(self, current):
        return Predicate({self.mongo_operator: self.compile_pattern(), '$options': 'i'})


class LikeExpression(RegexExpression):
    """ 'like': case-insensitive substring match with a literal value """

    def compile_pattern(self):
        return '.*' + re.escape(str(self.value)) + '.*'

# endregion


def fold_expressions(expressions) -> dict:
    """ Fold a list of conditions into a {field: scalar | Predicate} mapping, in order

        :type expressions: list[ConditionExpressionBase]
        :rtype: dict
    """
    return reduce(
        lambda acc, e: {**acc, e.field: e.merge_into(acc.get(e.field, ABSENT))},
        expressions,
        {}
    )


def compile_filter(folded: dict) -> dict:
    """ Convert folded conditions into a filter the document store understands """
    # Predicates are an internal detail
    return {field: dict(value) if isinstance(value, Predicate) else value
            for field, value in folded.items()}


class DocFilter(DocQueryHandlerBase):
    """ Conditions filter.

        Compiles the list of conditions into a single `$match` stage,
        with exactly one filter value per field.
    """

    query_object_section_name = 'filter'

    def __init__(self, collection_name, owner_field='userId', lenient=True):
        """ Init a filter

        :param collection_name: The collection the query is made for
        :param owner_field: The reserved name of the field that identifies the owner.
            Its value is always replaced with the principal's id.
        :param lenient: Skip malformed conditions, treat unknown operators as equality.
            When `False`, both raise InvalidQueryError
        """
        super(DocFilter, self).__init__(collection_name)

        # Settings
        self.owner_field = owner_field
        self.lenient = lenient

        # On input
        #: list[ConditionExpressionBase]
        self.expressions = None
        #: {field: scalar | Predicate}
        self.folded = None
        #: The compiled filter
        self.filter = None

    # Operator => (expression class, store operator)
    _operators = {
        '==': (EqualityExpression, '$eq'),
        '!=': (OperatorExpression, '$ne'),
        '>': (OperatorExpression, '$gt'),
        '>=': (OperatorExpression, '$gte'),
        '<': (OperatorExpression, '$lt'),
        '<=': (OperatorExpression, '$lte'),
        'in': (MembershipExpression, '$in'),
        'nin': (MembershipExpression, '$nin'),
        'array-contains': (DirectValueExpression, '$eq'),
        'array-contains-any': (MembershipExpression, '$in'),
        'exists': (OperatorExpression, '$exists'),
        'regex': (RegexExpression, '$regex'),
        'like': (LikeExpression, '$regex'),
    }

    # The class for operators nobody has heard of
    _UNKNOWN_OPERATOR_EXPRESSION_CLS = DirectValueExpression

    # The class for the owner field
    _OWNER_EXPRESSION_CLS = OwnerExpression

    def input_prepare_query_object(self, query_object):
        # 'conditions' is the name the UI uses
        if 'conditions' in query_object:
            query_object[self.query_object_section_name] = query_object.pop('conditions')
        return query_object

    def input(self, conditions):
        super(DocFilter, self).input(conditions)
        self.expressions = self._parse_conditions(conditions)
        self.folded = fold_expressions(self.expressions)
        self.filter = compile_filter(self.folded)
        return self

    def _parse_conditions(self, conditions):
        """ Parse the list of conditions

        :type conditions: list[dict] | None
        :rtype: list[ConditionExpressionBase]
        """
        if not conditions:
            return []

        if not isinstance(conditions, (list, tuple)):
            self._malformed('Filter conditions must be a list', conditions)
            return []

        expressions = []
        for condition in conditions:
            expression = self._parse_condition(condition)
            if expression is not None:
                expressions.append(expression)
        return expressions

    def _parse_condition(self, condition):
        """ Parse a single condition, or return `None` if it's skipped """
        if not isinstance(condition, dict):
            return self._malformed('Condition must be an object', condition)

        field = condition.get('field')
        operator = condition.get('operator')
        value = condition.get('value', ABSENT)

        # The owner field: always the principal's id, no matter what the user has provided
        owner_field_forced = self.owner_field is not None and field == self.owner_field
        if owner_field_forced:
            value = self._principal_id()

        if not field or not operator or value is ABSENT:
            return self._malformed('Condition must have a field, an operator, and a value', condition)
        if not isinstance(field, str) or not isinstance(operator, str):
            return self._malformed('Condition field and operator must be strings', condition)

        # The owner field only ever selects the principal's own documents: the operator is ignored
        if owner_field_forced:
            return self._OWNER_EXPRESSION_CLS(field, '==', '$eq', value)

        try:
            expression_cls, mongo_operator = self._operators[operator]
        except KeyError:
            if not self.lenient:
                raise InvalidQueryError('Unsupported operator "{}" found in filter for field `{}`'
                                        .format(operator, field))
            expression_cls, mongo_operator = self._UNKNOWN_OPERATOR_EXPRESSION_CLS, '$eq'

        return expression_cls(field, operator, mongo_operator, value)

    def _malformed(self, err, condition):
        """ Handle a malformed condition according to the lenient-parse policy """
        if not self.lenient:
            raise InvalidQueryError('{}: {!r}'.format(err, condition))
        logger.warning('Skipping malformed condition for "%s": %r', self.collection_name, condition)
        return None

    def _principal_id(self):
        principal = self.docquery.principal if self.docquery is not None else None
        return principal.id if principal is not None else ''

    def get_scalar_equality(self, field):
        """ Get the value the field is compared to with a plain equality, or ABSENT """
        value = self.folded.get(field, ABSENT)
        return ABSENT if isinstance(value, Predicate) else value

    def compile_statement(self):
        """ The compiled filter: {field: value | {operator: value}}

        :rtype: dict
        """
        return self.filter

    def compile_stages(self):
        return [{'$match': self.compile_statement()}]

    def get_final_input_value(self):
        return [e.get_final_input_value() for e in self.expressions]
