"""
### Limit Operation
Limiting corresponds to the `$skip` and `$limit` stages of the pipeline.

The Limit operation consists of three optional parts:

* `limitCount` would limit the number of documents returned by the API
* `offsetCount` would shift the "window" a number of documents
* `startAfter` is the same as `offsetCount`, and wins over it when both are given

Together, these elements implement pagination.

Example:

```javascript
$.get('/data/users?query=' + JSON.stringify({
    limitCount: 100, // 100 documents per page
    offsetCount: 200,  // skip 200 documents, meaning, we're on the third page
}))
```

Values: can be a number, a string that starts with a number (`"20"`, `"20px"`), or a `null`.
Anything else is ignored.
"""

import math
import re

from .base import DocQueryHandlerBase
from ..exc import InvalidQueryError


_LEADING_INTEGER = re.compile(r'^\s*([+-]?\d+)')


def parse_int(value):
    """ Parse an integer the forgiving way the UI expects it to be parsed

        * int: as is
        * float: truncated, if finite
        * str: the leading integer, if any: '20' -> 20, ' 7 items' -> 7, '2.9' -> 2
        * anything else: None

        :rtype: int | None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return math.trunc(value) if math.isfinite(value) else None
    if isinstance(value, str):
        m = _LEADING_INTEGER.match(value)
        return int(m.group(1)) if m else None
    return None


class DocLimit(DocQueryHandlerBase):
    """ Limits and offsets

        Handles three keys:
        * 'limitCount': None, or int: $limit for the pipeline
        * 'offsetCount': None, or int: $skip for the pipeline
        * 'startAfter': None, or int: $skip, overrides 'offsetCount'
    """

    query_object_section_name = 'limit'

    #: The keys of the Query Object this handler takes
    QUERY_OBJECT_KEYS = ('limitCount', 'offsetCount', 'startAfter')

    def __init__(self, collection_name, max_items=None, lenient=True):
        """ Init a limit

        :param collection_name: The collection the query is made for
        :param max_items: The maximum number of documents that can be loaded with this query.
            The user can never go any higher than that, and this value is forced onto every query.
        :param lenient: Ignore values that are not numbers. When `False`, raise InvalidQueryError
        """
        super(DocLimit, self).__init__(collection_name)

        # Config
        self.max_items = max_items
        assert self.max_items is None or self.max_items > 0
        self.lenient = lenient

        # On input
        self.skip = None
        self.limit = None

    def input_prepare_query_object(self, query_object):
        """ Alter Query Object

        Unlike other handlers, this one receives 3 values.
        DocQuery only supports one key per handler.
        Solution: pack them as a tuple
        """
        if any(key in query_object for key in self.QUERY_OBJECT_KEYS):
            query_object[self.query_object_section_name] = tuple(query_object.pop(key, None)
                                                                 for key in self.QUERY_OBJECT_KEYS)
            if query_object[self.query_object_section_name] == (None, None, None):
                query_object.pop(self.query_object_section_name)  # remove it if it's actually empty
        return query_object

    def input(self, limit_count=None, offset_count=None, start_after=None):
        # DocQuery actually gives us a tuple
        # Adapt.
        if isinstance(limit_count, tuple):
            limit_count, offset_count, start_after = limit_count

        # Super
        super(DocLimit, self).input((limit_count, offset_count, start_after))

        # Parse
        limit = self._parse('limitCount', limit_count)
        skip = self._parse('startAfter', start_after)
        if skip is None:
            skip = self._parse('offsetCount', offset_count)

        # Negative: as if not provided
        skip = None if skip is None or skip < 0 else skip
        limit = None if limit is None or limit < 0 else limit

        # Max limit
        if self.max_items:
            limit = min(self.max_items, limit or self.max_items)

        # Done
        self.skip = skip
        self.limit = limit
        return self

    def _parse(self, name, value):
        number = parse_int(value)
        if number is None and value is not None and not self.lenient:
            raise InvalidQueryError('{} must be either an integer, or null'.format(name))
        return number

    @property
    def has_limit(self):
        """ Check whether there's a limit on this handler """
        return bool(self.limit or self.skip)

    def compile_stages(self):
        """ $skip and $limit; zeroes produce no stage """
        stages = []
        if self.skip:
            stages.append({'$skip': self.skip})
        if self.limit:
            stages.append({'$limit': self.limit})
        return stages

    def get_final_input_value(self):
        return dict(skip=self.skip, limit=self.limit)
