from .crudhelper import CollectionCrudHelper, DEFAULT_COLLECTION_SETTINGS
from .crudview import CollectionViewMixin, NamedQueryViewMixin, CRUD_METHOD
