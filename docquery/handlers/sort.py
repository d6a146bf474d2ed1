"""
### Sort Operation

Sorting corresponds to the `$sort` stage of the pipeline.

The UI would normally require the documents to be sorted by some field.
Two ways to do it:

```javascript
$.get('/data/users?query=' + JSON.stringify({
    orderByField: 'age',  // sort by age
    orderDirection: 'asc',  // ascending; the default is 'desc'
}))
```

or, when sorting by multiple fields, with an explicit sort object:

```javascript
$.get('/data/users?query=' + JSON.stringify({
    sortObject: {lastName: 1, firstName: 1},  // 1 | -1 | 'asc' | 'desc'
}))
```

`sortObject`, when given, wins over `orderByField` and `orderDirection`.
Without any input, documents are sorted by `_id`, descending.
"""

from pymongo import ASCENDING, DESCENDING

from .base import DocQueryHandlerBase
from ..exc import InvalidQueryError


class DocSort(DocQueryHandlerBase):
    """ Sorting

        * orderByField + orderDirection: sort by one field
        * sortObject: { a: +1, b: -1 }, key order preserved
    """

    query_object_section_name = 'sort'

    #: The keys of the Query Object this handler takes
    QUERY_OBJECT_KEYS = ('orderByField', 'orderDirection', 'sortObject')

    #: Direction names
    _DIRECTIONS = {
        1: ASCENDING, -1: DESCENDING,
        '1': ASCENDING, '-1': DESCENDING,
        'asc': ASCENDING, 'ascending': ASCENDING,
        'desc': DESCENDING, 'descending': DESCENDING,
    }

    def __init__(self, collection_name, default_sort_field='_id', default_sort_direction='desc', lenient=True):
        super(DocSort, self).__init__(collection_name)

        # Settings
        self.default_sort_field = default_sort_field
        self.default_sort_direction = default_sort_direction
        self.lenient = lenient

        # On input
        #: dict of a sort spec: {field: +1|-1}
        self.sort_spec = None

    def input_prepare_query_object(self, query_object):
        """ Pack 'orderByField', 'orderDirection', 'sortObject' into a single 'sort' section """
        if any(key in query_object for key in self.QUERY_OBJECT_KEYS):
            query_object[self.query_object_section_name] = {key: query_object.pop(key)
                                                            for key in self.QUERY_OBJECT_KEYS
                                                            if key in query_object}
        return query_object

    def input(self, sort=None):
        super(DocSort, self).input(sort)
        if sort is not None and not isinstance(sort, dict):
            self._invalid('sort must be an object')
            sort = None
        sort = sort or {}

        sort_object = sort.get('sortObject')
        if sort_object:
            self.sort_spec = self._input_sort_object(sort_object)

        # No sort object, or a broken one that leniency has ignored
        if not self.sort_spec:
            order_by_field = sort.get('orderByField') or self.default_sort_field
            order_direction = sort.get('orderDirection') or self.default_sort_direction
            if not isinstance(order_by_field, str):
                self._invalid('orderByField must be a string')
                order_by_field = self.default_sort_field
            self.sort_spec = {order_by_field: ASCENDING if order_direction == 'asc' else DESCENDING}

        return self

    def _input_sort_object(self, sort_object):
        """ Validate and normalize an explicit sort object """
        if not isinstance(sort_object, dict):
            return self._invalid('sortObject must be an object')

        spec = {}
        for field, direction in sort_object.items():
            try:
                if isinstance(direction, bool):  # True == 1
                    raise KeyError(direction)
                spec[field] = self._DIRECTIONS[direction.lower() if isinstance(direction, str) else direction]
            except (KeyError, TypeError):
                return self._invalid('sortObject direction must be one of: 1, -1, "asc", "desc"; '
                                     '{!r} provided for `{}`'.format(direction, field))
        return spec

    def _invalid(self, err):
        if not self.lenient:
            raise InvalidQueryError(err)
        return None

    def compile_stages(self):
        if not self.sort_spec:
            return []
        return [{'$sort': dict(self.sort_spec)}]

    def get_final_input_value(self):
        return dict(self.sort_spec)
