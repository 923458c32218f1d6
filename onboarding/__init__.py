"""
Onboarding Assessments Service

Generation, caching and grading of employee onboarding assessments:
1. Module and baseline quizzes generated from ingested training content and
   reused until that content changes
2. Local grading of closed-form questions with rubric grading for the rest
3. Learning plans regenerated only when an employee's results change
4. Learning-style classification that tailors module quizzes
"""

__version__ = "0.1.0"
