from .service import UNMATCHED, BusinessMatcher, business_matcher, match

__all__ = ["UNMATCHED", "BusinessMatcher", "business_matcher", "match"]
