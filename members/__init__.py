"""
# Members

Registration and relay middleware between an application's action pipeline
and a member directory provider.

The package is split into:
  * reconciler    - ordered key set difference (pure, no I/O),
  * subscription  - single live subscription to the provider change stream,
  * streams       - ready-made change streams (push subject, async iterator),
  * policy        - delta-based and full-replace registration policies,
  * middleware    - MembersMiddleware, tying the above together,
  * models        - snapshots, state and actions,
  * diagnostics   - injected diagnostics sinks and relay exception handlers,
  * config        - MiddlewareConfig.
"""

# Remember to run release.py after bumping the version in pyproject.toml!

from members.config import MiddlewareConfig
from members.diagnostics import CollectingDiagnostics
from members.diagnostics import DiagnosticEvent
from members.diagnostics import DiagnosticsSink
from members.diagnostics import LoggingDiagnostics
from members.diagnostics import RelayExceptionCollector
from members.diagnostics import SilentDiagnostics
from members.errors import DataNotFoundError
from members.errors import DecodingError
from members.errors import EncodingError
from members.errors import MembersError
from members.middleware import MembersMiddleware
from members.models import MemberSnapshot
from members.models import MembersAction
from members.models import MembersSnapshotState
from members.models import MembersState
from members.models import Register
from members.models import StateChanged
from members.models import decode_state
from members.models import encode_state
from members.policy import DeltaBased
from members.policy import DeltaProvider
from members.policy import FullReplace
from members.policy import ListProvider
from members.policy import RegistrationPolicy
from members.policy import policy_from_name
from members.reconciler import Insert
from members.reconciler import RegistrationDelta
from members.reconciler import Remove
from members.reconciler import reconcile
from members.streams import AsyncIteratorStream
from members.streams import ChangeSubject
from members.subscription import ChangeStream
from members.subscription import Subscription
from members.subscription import SubscriptionController


version_major = 0
version_minor = 3
version_patch = 0
__version__ = f"{version_major}.{version_minor}.{version_patch}"

__all__ = [
    "AsyncIteratorStream",
    "ChangeStream",
    "ChangeSubject",
    "CollectingDiagnostics",
    "DataNotFoundError",
    "DecodingError",
    "DeltaBased",
    "DeltaProvider",
    "DiagnosticEvent",
    "DiagnosticsSink",
    "EncodingError",
    "FullReplace",
    "Insert",
    "ListProvider",
    "LoggingDiagnostics",
    "MemberSnapshot",
    "MembersAction",
    "MembersError",
    "MembersMiddleware",
    "MembersSnapshotState",
    "MembersState",
    "MiddlewareConfig",
    "Register",
    "RegistrationDelta",
    "RegistrationPolicy",
    "RelayExceptionCollector",
    "Remove",
    "SilentDiagnostics",
    "StateChanged",
    "Subscription",
    "SubscriptionController",
    "decode_state",
    "encode_state",
    "policy_from_name",
    "reconcile",
]
