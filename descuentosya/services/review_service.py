from __future__ import annotations

from typing import Dict, List, Optional

from descuentosya.models import Review, utcnow
from descuentosya.observability import increment_counter
from descuentosya.services.base import MarketplaceService
from descuentosya.services.results import CommandResult, ErrorKind
from descuentosya.services.validation import clean_text

MIN_RATING = 1
MAX_RATING = 5


class ReviewService(MarketplaceService):
    rejection_metric = "reviews_rejected_total"

    def add_review(
        self,
        deal_id: int,
        user_id: str,
        user_name: str,
        rating,
        comment: Optional[str] = None,
    ) -> CommandResult:
        if not user_id:
            return self._reject(ErrorKind.VALIDATION_ERROR, "A user is required to review a deal", deal_id=deal_id)
        try:
            rating_value = int(rating)
        except (TypeError, ValueError):
            return self._reject(ErrorKind.VALIDATION_ERROR, "Rating must be a whole number", deal_id=deal_id)
        if isinstance(rating, float) and not rating.is_integer():
            return self._reject(ErrorKind.VALIDATION_ERROR, "Rating must be a whole number", deal_id=deal_id)
        if not MIN_RATING <= rating_value <= MAX_RATING:
            return self._reject(
                ErrorKind.VALIDATION_ERROR,
                f"Rating must be between {MIN_RATING} and {MAX_RATING}",
                deal_id=deal_id,
            )

        deal = self.repo.get_deal(deal_id)
        if not deal:
            return self._reject(ErrorKind.NOT_FOUND, "Deal not found", deal_id=deal_id)

        review = Review(
            dealID=deal_id,
            userID=str(user_id),
            user_name=clean_text(user_name, max_length=255) or "Anonymous",
            rating=rating_value,
            comment=clean_text(comment, max_length=2000),
            helpful=0,
            created_at=utcnow(),
        )
        self.repo.add(review)
        self._commit("add review", deal_id=deal_id)

        increment_counter("reviews_created_total", labels={"rating": str(rating_value)})
        self.logger.info("Review %s added to deal %s", review.reviewID, deal_id)
        return CommandResult.ok("Review added", review)

    def get_reviews_for_deal(self, deal_id: int) -> List[Review]:
        return self.repo.reviews_for_deal(deal_id)

    def rating_summary(self, deal_id: int) -> Dict[str, object]:
        count, average = self.repo.rating_summary(deal_id)
        return {
            "count": count,
            "average": round(average, 1) if average is not None else None,
        }
