from .math_tools import MathTools
from .exercise_graph import ExerciseGraph, build_graph
from .load_estimator import LoadEstimator
from .daily_selector import DailySelector, MuscleBalancePolicy
from .quarterly_planner import QuarterlyPlanner

__all__ = [
    "MathTools",
    "ExerciseGraph",
    "build_graph",
    "LoadEstimator",
    "DailySelector",
    "MuscleBalancePolicy",
    "QuarterlyPlanner",
]
