# SPDX-License-Identifier: AGPL-3.0-only

"""
Evidence aggregation.

Folds all links of one person to one article, plus an optional manual
assessment, into a three-way split: applies / does not apply / insufficient data.
"""

from typing import List, Optional

from .models import ArticleScore, Assessment, DocumentArticleLink

# Share always left to "insufficient data" once any evidence exists
RESIDUAL_UNCERTAINTY = 5
# Split used when links exist but none of them supports the article
NO_SUPPORT_DOES_NOT_APPLY = 70
NO_SUPPORT_INSUFFICIENT = 30


class EvidenceAggregator:
    """Pure scoring of one article from its links and assessment."""

    def score(self, article_id: str, links: List[DocumentArticleLink],
              assessment: Optional[Assessment] = None) -> ArticleScore:
        """
        Score an article.

        Rules, first match wins:
        1. a manual assessment sets "applies" directly;
        2. no links means no data;
        3. links without any positive confidence lean to "does not apply";
        4. otherwise the strongest link decides "applies".

        "applies" is the maximum positive link confidence; weaker links never lower it.
        """
        links = list(links or [])

        if assessment is not None:
            applies = assessment.value
            return ArticleScore(
                article_id=article_id,
                applies=applies,
                does_not_apply=max(0, 100 - applies - RESIDUAL_UNCERTAINTY),
                insufficient_data=RESIDUAL_UNCERTAINTY,
                relevant_count=len(links),
                overridden=True,
            )

        if not links:
            return ArticleScore(article_id=article_id, insufficient_data=100, relevant_count=0)

        positive = [link.confidence for link in links if link.confidence > 0]
        if not positive:
            return ArticleScore(
                article_id=article_id,
                applies=0,
                does_not_apply=NO_SUPPORT_DOES_NOT_APPLY,
                insufficient_data=NO_SUPPORT_INSUFFICIENT,
                relevant_count=len(links),
            )

        applies = max(positive)
        return ArticleScore(
            article_id=article_id,
            applies=applies,
            does_not_apply=max(0, 100 - applies - RESIDUAL_UNCERTAINTY),
            insufficient_data=RESIDUAL_UNCERTAINTY,
            relevant_count=len(links),
        )
