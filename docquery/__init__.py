"""
DocQuery is a JSON query compiler that lets the UI query schema-free document collections
with a simple list of conditions, a sort order, and a page.

The main use case is the interaction with the UI:
every time the UI needs some *sorting*, *filtering*, or *pagination*,
you won't have to write a single line of repetitive code!

It will let the API user send a JSON Query Object along with the REST request,
which will control the way the result set is generated:

```javascript
$.get('/data/transactions?query=' + JSON.stringify({
    conditions: [
        {field: 'amount', operator: '<', value: 0},  // spendings only
        {field: 'category', operator: 'in', value: ['food', 'rent']},
    ],
    orderByField: 'date',  // sort by `date` DESC
    limitCount: 10,  // limit to 10 documents
}))
```

Query Objects are compiled into aggregation pipelines for a document store.
Ledger collections get a running balance computed on the fly.

Pipelines can also be stored under a name, with placeholders, and executed later: see `docquery.named`.
"""

# Exceptions that are used here and there
from .exc import *

# The authenticated user, on whose behalf queries are made
from .principal import Principal

# The heart of DocQuery are the handlers:
# that's where your JSON objects are converted to pipeline stages!
from . import handlers
from .handlers import RunningBalanceSettings

# DocQuery is the man that parses your Query Object and puts together the stages from every handler.
from .query import DocQuery, CompiledPipeline, parse_query_string

# Document stores run the pipelines
from .store import DocumentStore, MongoDocumentStore

# Named queries: stored pipelines with placeholders
from .named import NamedQuery, NamedQueryRegistry, init_registry, substitute_parameters, find_placeholders

# CollectionCrudHelper is something that you'll need when building JSON API that implements CRUD:
# Create/Read/Update/Delete
from .crud import CollectionCrudHelper, CollectionViewMixin, NamedQueryViewMixin, DEFAULT_COLLECTION_SETTINGS

# Helpers
# Reusable query objects (so that you don't have to initialize them over and over again)
from .util import Reusable
# Settings objects for DocQuery and CollectionCrudHelper
from .util import DocQuerySettingsDict, CollectionCrudHelperSettingsDict
