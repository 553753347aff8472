# Intelligence processing module

from .similarity import levenshtein_distance, normalized_similarity, match_score
from .intent_classifier import IntentClassifier, Intent, IntentCategory, ClassifierThresholds

__all__ = [
    'levenshtein_distance', 'normalized_similarity', 'match_score',
    'IntentClassifier', 'Intent', 'IntentCategory', 'ClassifierThresholds'
]
