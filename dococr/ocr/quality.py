from dococr.ocr.models import QualityAssessment, QualityRating

EXCELLENT_THRESHOLD = 85.0
GOOD_THRESHOLD = 70.0
FAIR_THRESHOLD = 50.0
MIN_WORD_COUNT = 10

FAIR_RECOMMENDATIONS = (
    "Consider preprocessing with binarization",
    "Check if correct language is selected",
)
POOR_RECOMMENDATIONS = (
    "Image quality may be too low",
    "Try different preprocessing options",
    "Verify document orientation",
    "Consider rescanning at higher resolution",
)
FEW_WORDS_RECOMMENDATION = "Very few words detected - check if image contains text"


def assess_quality(confidence: float, word_count: int) -> QualityAssessment:
    """Rate a page's average confidence and suggest how to improve it."""
    recommendations: list[str] = []
    if confidence >= EXCELLENT_THRESHOLD:
        rating = QualityRating.EXCELLENT
    elif confidence >= GOOD_THRESHOLD:
        rating = QualityRating.GOOD
    elif confidence >= FAIR_THRESHOLD:
        rating = QualityRating.FAIR
        recommendations.extend(FAIR_RECOMMENDATIONS)
    else:
        rating = QualityRating.POOR
        recommendations.extend(POOR_RECOMMENDATIONS)

    if word_count < MIN_WORD_COUNT:
        recommendations.append(FEW_WORDS_RECOMMENDATION)

    return QualityAssessment(score=confidence, rating=rating, recommendations=recommendations)
