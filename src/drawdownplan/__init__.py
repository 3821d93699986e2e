"""drawdownplan: period-by-period retirement drawdown decision engine."""

__version__ = "0.4.0"

from drawdownplan.analytics.metrics import DrawdownMetrics as DrawdownMetrics
from drawdownplan.analytics.metrics import summarize as summarize
from drawdownplan.config.defaults import default_config as default_config
from drawdownplan.config.defaults import default_household as default_household
from drawdownplan.config.defaults import get_profile as get_profile
from drawdownplan.config.schema import AccountState as AccountState
from drawdownplan.config.schema import EngineConfig as EngineConfig
from drawdownplan.config.schema import Household as Household
from drawdownplan.config.schema import MarketObservation as MarketObservation
from drawdownplan.config.schema import PeriodInputs as PeriodInputs
from drawdownplan.config.schema import RiskProfile as RiskProfile
from drawdownplan.config.schema import TaxInputs as TaxInputs
from drawdownplan.core.engine import PeriodResult as PeriodResult
from drawdownplan.core.engine import SimulationResult as SimulationResult
from drawdownplan.core.engine import evaluate_period as evaluate_period
from drawdownplan.core.engine import simulate_periods as simulate_periods
from drawdownplan.core.state import ControllerState as ControllerState
from drawdownplan.market.classifier import MarketAssessment as MarketAssessment
from drawdownplan.market.classifier import classify as classify
from drawdownplan.policies.actions import ActionInputs as ActionInputs
from drawdownplan.policies.actions import ActionResult as ActionResult
from drawdownplan.policies.actions import plan_action as plan_action
from drawdownplan.policies.liquidity import target_liquidity as target_liquidity
from drawdownplan.policies.spending.controller import SpendingInputs as SpendingInputs
from drawdownplan.policies.spending.controller import SpendingResult as SpendingResult
from drawdownplan.policies.spending.controller import compute_spending as compute_spending
from drawdownplan.taxes.capital_gains import SaleCaps as SaleCaps
from drawdownplan.taxes.capital_gains import SaleResult as SaleResult
from drawdownplan.taxes.capital_gains import allocate_sale as allocate_sale
from drawdownplan.taxes.capital_gains import merge_sale_results as merge_sale_results
