"""
Assessments Package

Quiz caching, grading, learning plans and learning styles.
"""

from onboarding.assessments.cache_controller import AssessmentCacheController
from onboarding.assessments.grading import GradingEngine
from onboarding.assessments.learning_plan import LearningPlanSynthesizer
from onboarding.assessments.learning_style import LearningStyleClassifier
from onboarding.assessments.question_generator import QuizGenerator
from onboarding.assessments.repositories import StoreContext
from onboarding.assessments.submissions import SubmissionService

__all__ = [
    'AssessmentCacheController',
    'GradingEngine',
    'LearningPlanSynthesizer',
    'LearningStyleClassifier',
    'QuizGenerator',
    'StoreContext',
    'SubmissionService',
]
