from .calculator import calculate_commission_split
from .fees import FeeCalculator
from .planner import AutoSplitPlanner, SplitPlan

__all__ = ["calculate_commission_split", "FeeCalculator", "AutoSplitPlanner", "SplitPlan"]
