class DocQueryHandlerBase:
    """ Base for the handlers DocQuery is made of

        A handler owns one section of the Query Object: it validates the section in input(),
        and contributes pipeline stages in compile_stages().
    """

    #: The Query Object section this handler reads
    query_object_section_name = None

    def __init__(self, collection_name):
        """ Create a handler for a collection

        No input yet: the object is configured once, and receives input for every query.

        :param collection_name: The collection queries are made against

        NOTE: every argument with a default value is a handler setting, and is picked from DocQuery settings.
        """
        #: The collection being queried
        self.collection_name = collection_name

        # Set by input(); other handlers may look at it
        self.input_received = False

        #: The DocQuery this handler belongs to. May stay None when used on its own
        self.docquery = None

        #: Whatever input() has received
        self.input_value = None

    def with_docquery(self, docquery):
        """ Bind this handler to a DocQuery

            :type docquery: docquery.query.DocQuery
            """
        self.docquery = docquery
        return self

    def __copy__(self):
        """ A shallow copy, taken before input(): that's how Reusable() makes handlers reusable """
        cls = self.__class__
        result = cls.__new__(cls)
        result.__dict__.update(self.__dict__)
        return result

    def input_prepare_query_object(self, query_object):
        """ Rearrange the Query Object before anything else happens to it.

        The API spreads some sections over several top-level keys (e.g. 'limitCount' and 'offsetCount').
        A handler packs its keys into its own section here.

        :param query_object: dict
        """
        return query_object

    def input(self, qo_value):
        """ Receive this handler's section of the Query Object.

        Subclasses validate the value and keep the result in public attributes.

        :param qo_value: the section's value, or None
        :rtype: DocQueryHandlerBase
        :raises InvalidQueryError
        """
        self.input_value = qo_value  # not copied: never modify it
        self.input_received = True

        # input() works once per object
        self.input = self.__raise_input_not_reusable

        return self

    def __raise_input_not_reusable(self, *args, **kwargs):
        raise RuntimeError("{}.input() was already called. "
                           "Wrap the handler into Reusable(), or copy() it first"
                           .format(self.__class__.__name__))

    def compile_stages(self):
        """ Pipeline stages this handler contributes

        :rtype: list[dict]
        """
        raise NotImplementedError()

    def get_final_input_value(self):
        """ The input, as it was understood by the handler """
        return self.input_value
