"""Domain layer - Pure Python ledger logic."""

from travel_ledger.domain.entities import Account, FinanceAccountMap, JournalVoucher, SequenceCounter
from travel_ledger.domain.services import (
    ChartOfAccountsLookup,
    FinanceAccountMapResolver,
    IAccountRepository,
    ISequenceStore,
    ISettingsRepository,
    IVoucherRepository,
    JournalPostingService,
    SequenceAllocator,
    VoucherLifecycleService,
)
from travel_ledger.domain.value_objects import (
    AccountCategory,
    AccountType,
    JournalLine,
    SequenceType,
    VoucherState,
)
