from .user import User  # noqa: F401
from .match import Match, MatchStatus, Player, PlayerMatchStat  # noqa: F401
from .fantasy_team import FantasyTeam, FantasyTeamPlayer  # noqa: F401
from .contest import Contest, ContestEntry, EntryStatus, PrizeBreakup  # noqa: F401

from .wallet import Wallet  # noqa: F401
from .wallet_txn import TxnKind, WalletTxn  # noqa: F401

from .settlement_failure import SettlementFailure  # noqa: F401
from .job_lease import JobLease  # noqa: F401

from .audit_log import AuditLog  # noqa: F401
