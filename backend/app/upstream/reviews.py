# backend/app/upstream/reviews.py
from loguru import logger

from backend.app.config import settings
from backend.app.core.errors import ConfigurationError, Unauthorized, UpstreamFailure
from .connection import ContentClient
from .schemas import ReviewFeed


async def get_review_feed(client: ContentClient) -> ReviewFeed:
    """Fetch the review aggregate wholesale.

    Any failure yields an empty feed so review widgets can render an empty
    state; credential failures are still logged at ERROR.
    """
    endpoint = settings.upstream.review_feed_path
    try:
        response = await client.get(endpoint)
    except Unauthorized as e:
        logger.error(f"get_review_feed: upstream rejected credentials: {e}")
        return ReviewFeed()
    except (UpstreamFailure, ConfigurationError) as e:
        logger.warning(f"get_review_feed: review feed unavailable: {e}")
        return ReviewFeed()

    feed = ReviewFeed.from_upstream(response.data)
    logger.info(f"get_review_feed: retrieved {len(feed.reviews)} reviews")
    return feed
