class BaseDocQueryException(AssertionError):  # `AssertionError`, like the rest of query-engine errors
    pass


class InvalidQueryError(BaseDocQueryException):
    """ Invalid input provided by the User """

    def __init__(self, err: str):
        self.err = err
        super(InvalidQueryError, self).__init__('Query object error: {err}'.format(err=err))


class InvalidQuerySyntaxError(InvalidQueryError):
    """ The Query Object text is not well-formed JSON, or not an object """


class DisabledError(InvalidQueryError):
    """ The feature is disabled """


class UnresolvedPlaceholderError(InvalidQueryError):
    """ A named query template has a placeholder that no parameter was given for

        Only raised when substitution is not lenient.
    """

    def __init__(self, name: str):
        self.name = name
        super(UnresolvedPlaceholderError, self).__init__(
            'No parameter provided for placeholder "{{{{{name}}}}}"'.format(name=name))


class NotFoundError(BaseDocQueryException):
    """ Something the user has referenced does not exist """

    def __init__(self, what: str, key):
        self.what = what
        self.key = key

        super(NotFoundError, self).__init__(
            '{what} not found: {key!r}'.format(what=what, key=key)
        )


class NamedQueryNotFoundError(NotFoundError):
    """ No named query is registered under the name """

    def __init__(self, name: str):
        super(NamedQueryNotFoundError, self).__init__('Query', name)


class DocumentNotFoundError(NotFoundError):
    """ No document with the given `id` in the collection """

    def __init__(self, collection_name: str, id):
        self.collection_name = collection_name
        super(DocumentNotFoundError, self).__init__(
            'Document in "{collection}"'.format(collection=collection_name), id)


class StoreError(BaseDocQueryException):
    """ The document store has failed to execute an operation

        The original exception is kept as `cause` (and `__cause__`).
        Store failures are never retried.
    """

    def __init__(self, operation: str, collection_name: str, cause: BaseException):
        self.operation = operation
        self.collection_name = collection_name
        self.cause = cause

        super(StoreError, self).__init__(
            'Document store failed to {operation} on "{collection}": {cause}'.format(
                operation=operation,
                collection=collection_name,
                cause=cause)
        )


def error_status(e: BaseException) -> int:
    """ Get the HTTP status code an API should respond with for an error

        * 400 for invalid user input
        * 404 for missing named queries and documents
        * 500 for anything else, including `StoreError`
    """
    if isinstance(e, InvalidQueryError):
        return 400
    if isinstance(e, NotFoundError):
        return 404
    return 500
