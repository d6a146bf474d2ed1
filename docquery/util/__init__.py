from .reusable import Reusable
from .settings_handler import DocQuerySettingsHandler
from .settings_dict import DocQuerySettingsDict, CollectionCrudHelperSettingsDict
from .inspect import pluck_kwargs_from
