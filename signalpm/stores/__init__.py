"""Entity stores, one per document collection."""
from signalpm.stores.archetypes import ArchetypeStore
from signalpm.stores.base import EntityNotFoundError, EntityStore
from signalpm.stores.decisions import DecisionStore
from signalpm.stores.delivery import BlockerStore, ChangelogStore
from signalpm.stores.design_partners import DesignPartnerStore
from signalpm.stores.discovery import FeedbackStore, HypothesisStore
from signalpm.stores.documents import KnowledgeBaseStore
from signalpm.stores.focus_areas import FocusAreaStore
from signalpm.stores.ideas import IdeaStore
from signalpm.stores.journey_maps import JourneyMapStore
from signalpm.stores.objectives import ObjectiveStore
from signalpm.stores.singletons import StrategicContextStore, VisionStore

__all__ = [
    "ArchetypeStore",
    "BlockerStore",
    "ChangelogStore",
    "DecisionStore",
    "DesignPartnerStore",
    "EntityNotFoundError",
    "EntityStore",
    "FeedbackStore",
    "FocusAreaStore",
    "HypothesisStore",
    "IdeaStore",
    "JourneyMapStore",
    "KnowledgeBaseStore",
    "ObjectiveStore",
    "StrategicContextStore",
    "VisionStore",
]
