"""SIP (Systematic Investment Plan) Layer.

Components:
- SIPSchedule: Recurring investment into a basket
- SIPScheduler: Create/execute/pause/resume/cancel/update state machine
- next_execution_date: Pure date-advance function
"""

from stockbasket.sip.models import Frequency, SIPOutcome, SIPResult, SIPSchedule, SIPStatus
from stockbasket.sip.scheduler import SIPScheduler, market_today, next_execution_date

__all__ = [
    "Frequency",
    "SIPOutcome",
    "SIPResult",
    "SIPSchedule",
    "SIPScheduler",
    "SIPStatus",
    "market_today",
    "next_execution_date",
]
