"""
Data Access Layer - прогресс и профили поверх DocumentStore
"""

from .profile_dao import CharacterProfile, GenerationStatus, ProfileDAO, profile_document_id
from .progress_dao import ProgressDAO

__all__ = ["ProgressDAO", "ProfileDAO", "CharacterProfile", "GenerationStatus", "profile_document_id"]
