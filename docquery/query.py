import json
import logging
from copy import copy
from typing import NamedTuple, List, Optional

from . import handlers
from .exc import InvalidQueryError, InvalidQuerySyntaxError
from .principal import Principal
from .util import DocQuerySettingsHandler

logger = logging.getLogger(__name__)


def parse_query_string(text) -> dict:
    """ Parse the JSON Query Object that came with the request

        :param text: JSON text, or `None`
        :raises InvalidQuerySyntaxError: not a JSON object
    """
    if text is None or text == '':
        return {}

    try:
        query_object = json.loads(text)
    except ValueError as e:
        raise InvalidQuerySyntaxError('Query object is not valid JSON: {}'.format(e)) from e

    if not isinstance(query_object, dict):
        raise InvalidQuerySyntaxError('Query object must be an object, {} given'.format(type(query_object).__name__))

    return query_object


class CompiledPipeline(NamedTuple):
    """ The result of DocQuery: the stages to run, and their parts that callers may need """
    #: The aggregation pipeline
    stages: List[dict]
    #: The filter the user has asked for
    filter: dict
    #: The sort spec
    sort: dict
    #: Skip and limit, as the user has provided them. `None` if not provided
    skip: Optional[int]
    limit: Optional[int]
    #: The filter for an independent count(): the scope of the running balance included
    count_filter: dict

    def metadata(self, total: int) -> dict:
        """ Pagination metadata for a list response """
        return {
            'total': total,
            'limit': self.limit or total,
            'offset': self.skip or 0,
        }


class DocQuery:
    """ DocQuery: compile a Query Object into a document store pipeline """

    def __init__(self, collection_name, handler_settings=None):
        """ Init a query compiler for a collection

        :param collection_name: The collection to make queries for
        :param handler_settings: Settings for Query Object handlers.
            These are just plain kwargs names for every handler object's __init__ method.
            Note that you don't have to specify which object receives which kwarg:
            the `DocQuerySettingsHandler` object does that automatically.

            To disable a handler, give its name + '_enabled' mapped to a `False`.
            Example:

                sort_enabled=False

            The list of all settings is documented in DocQuerySettingsDict.

        :type handler_settings: dict | DocQuerySettingsDict | None
        """
        self.collection_name = collection_name

        # Initialize the settings
        self._handler_settings = DocQuerySettingsHandler(handler_settings or {})

        #: The authenticated principal the query is made on behalf of
        self.principal = None  # type: Principal | None

        # Get ready: Query object handlers
        self._init_query_object_handlers()

    def __copy__(self):
        """ DocQuery can be reused: wrap it with Reusable() which performs the automatic copy() """
        cls = self.__class__
        result = cls.__new__(cls)
        result.__dict__.update(self.__dict__)

        # Copy Query Object handlers
        for name in self.HANDLER_ATTR_NAMES:
            setattr(result, name, copy(getattr(result, name)))

        # Not shared between requests
        result.principal = None

        return result

    def with_principal(self, principal: Principal):
        """ Make the query on behalf of a principal

            The principal's id is forced into the owner field, and scopes the running balance.
        """
        self.principal = principal
        return self

    @property
    def lenient(self) -> bool:
        return self._handler_settings.get('lenient', True)

    def query(self, /, **query_object):
        """ Build a pipeline from a Query Object

        :param conditions: Filter conditions
        :param orderByField: Sort by one field
        :param orderDirection: 'asc' or 'desc'
        :param sortObject: Sort by many fields
        :param limitCount: Limit documents
        :param offsetCount: Skip documents
        :param startAfter: Skip documents, overrides `offsetCount`
        :raises InvalidQueryError: unknown Query Object operations provided (strict mode only)
        :raises InvalidQueryError: syntax error for any of the Query Object sections (strict mode only)
        :raises DisabledError: input provided to a disabled handler
        :rtype: DocQuery
        """
        # Prepare Query Object
        for handler_name, handler in self._handlers():
            query_object = handler.input_prepare_query_object(query_object)

        # Check if Query Object keys are all right
        invalid_keys = set(query_object.keys()) - self.QUERY_OBJECT_HANDLER_NAMES
        if invalid_keys:
            if not self.lenient:
                raise InvalidQueryError('Unknown Query Object operations: {}'.format(', '.join(sorted(invalid_keys))))
            logger.warning('Ignoring unknown Query Object operations for "%s": %s',
                           self.collection_name, ', '.join(sorted(invalid_keys)))

        # Bind every handler with ourselves
        for handler_name, handler in self._handlers():
            handler.with_docquery(self)

        # Process every field with its method
        # Every handler should be invoked because they may have defaults even when no input was provided
        for handler_name, handler in self._handlers():
            # Query Object value for this handler
            input_value = query_object.get(handler_name, None) if handler_name in self.QUERY_OBJECT_HANDLER_NAMES else None

            # Disabled handlers exception
            # But only test that if there actually was any input
            if input_value is not None:
                self._handler_settings.raise_if_not_handler_enabled(self.collection_name, handler_name)

            # Use the handler
            # Run it even when it does not have any input
            handler.input(input_value)

        # Done
        return self

    def end(self) -> CompiledPipeline:
        """ Get the resulting pipeline

            [scope?, running balance?, $match, $sort?, $skip?, $limit?]
        """
        # An empty query is fine
        if not self.handler_filter.input_received:
            self.query()

        balance_enabled = self._handler_settings.is_handler_enabled('balance')

        stages = []
        for handler_name, handler in self._handlers():
            # Disabled handlers still contribute their defaults.
            # The balance has no input, so disabling it removes its stages.
            if handler_name == 'balance' and not balance_enabled:
                continue
            stages.extend(handler.compile_stages())

        # The scope filters documents before the filter does: count what the pipeline returns
        filter = self.handler_filter.compile_statement()
        scope = self.handler_balance.compile_scope() if balance_enabled and self.handler_balance.is_active else {}
        # No conflicts: the owner field and the account are equalities with the same values in both
        count_filter = {**scope, **filter}

        return CompiledPipeline(
            stages=stages,
            filter=filter,
            sort=self.handler_sort.get_final_input_value(),
            skip=self.handler_limit.skip,
            limit=self.handler_limit.limit,
            count_filter=count_filter,
        )

    def __repr__(self):
        return 'DocQuery({!r})'.format(self.collection_name)

    # region Query Object handlers

    # This section initializes every Query Object handler, one per section.
    # Doing it this way enables you to override the way they are initialized, and use a custom query class with
    # custom handlers.

    _QO_HANDLER_BALANCE = handlers.DocRunningBalance
    _QO_HANDLER_FILTER = handlers.DocFilter
    _QO_HANDLER_SORT = handlers.DocSort
    _QO_HANDLER_LIMIT = handlers.DocLimit

    HANDLER_NAMES = frozenset(('balance',
                               'filter',
                               'sort',
                               'limit'))
    HANDLER_ATTR_NAMES = frozenset('handler_' + name
                                   for name in HANDLER_NAMES)

    #: Handlers that get their input from the Query Object
    QUERY_OBJECT_HANDLER_NAMES = frozenset(('filter', 'sort', 'limit'))

    def _handlers(self):
        """ Get the list of all (handler_name, handler) """
        return (
            # The ordering of these handlers is the ordering of pipeline stages:
            # 1. 'balance' before 'filter'
            #    The balance is computed over the whole account, not over the documents the user has chosen to see.
            #    It only applies the principal and account scope before itself.
            # 2. 'sort' after 'filter'
            # 3. 'limit' after everything
            ('balance', self.handler_balance),
            ('filter', self.handler_filter),
            ('sort', self.handler_sort),
            ('limit', self.handler_limit),
        )

    # for IDE completion
    handler_balance = None  # type: docquery.handlers.DocRunningBalance
    handler_filter = None  # type: docquery.handlers.DocFilter
    handler_sort = None  # type: docquery.handlers.DocSort
    handler_limit = None  # type: docquery.handlers.DocLimit

    def _init_query_object_handlers(self):
        """ Initialize every Query Object handler """
        for name in self.HANDLER_NAMES:
            # Every handler: name, attr, class
            handler_attr_name = 'handler_' + name
            handler_cls_attr_name = '_QO_HANDLER_' + name.upper()
            handler_cls = getattr(self, handler_cls_attr_name)

            # Use _init_handler()
            setattr(self, handler_attr_name,
                    self._init_handler(name, handler_cls)
                    )

        # Check settings
        self._handler_settings.raise_if_invalid_handler_settings(self)

    def _init_handler(self, handler_name, handler_cls):
        """ Init a handler, and load its settings """
        handler_settings = self._handler_settings.get_settings(handler_name, handler_cls)
        return handler_cls(self.collection_name, **handler_settings)

    # endregion
