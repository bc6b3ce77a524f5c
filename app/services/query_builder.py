"""
Turns a learner profile into a single search string.
"""
from app.schemas.roadmap import LearnerProfile


def build_search_query(profile: LearnerProfile) -> str:
    """
    Join the non-blank profile fields with single spaces, in the order
    job profile, qualification, skills, interests.

    Returns "" when every field is blank; the caller rejects that.
    """
    terms = [profile.job_profile, profile.qualification, profile.skills, profile.interests]
    return " ".join(term for term in terms if term and term.strip())
