"""Top-level package for the Commercial Tracker.

A small-business dashboard for income events, monthly budget targets and
customer/supplier partners.  The primary modules are:

* ``aggregation`` - posted income vs. budget over the fiscal window
* ``store`` - document store with live subscriptions
* ``ledger`` - in-memory collections and their write intents
* ``notifier`` - banner messages for new and updated income records
* ``session`` - one user's identity, collections and notifications
* ``visualization`` - functions that generate Plotly figures

To run the dashboard from the command line you can execute:

```bash
streamlit run commercial_tracker/Home.py
```
"""

from . import aggregation  # noqa: F401  # re-exported for convenience
from . import visualization  # noqa: F401  # re-exported for convenience
from .aggregation import AggregationResult, aggregate
from .session import TrackerSession

__all__ = ["aggregation", "visualization", "aggregate", "AggregationResult", "TrackerSession"]
