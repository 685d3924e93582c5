import json
import logging
import signal
import sys
import threading
import argparse

from recommender.app_context import AppContext
from recommender.config_loader import load_config
from recommender.errors import RecommendationEngineError, ValidationError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Set on SIGINT/SIGTERM; cancels the in-flight request
cancel_event = threading.Event()


def signal_handler(sig, frame):
    logger.info("Shutdown signal received, cancelling request")
    cancel_event.set()


def build_request(args) -> dict:
    request = {
        'latitude': args.lat,
        'longitude': args.lng,
        'userQuery': args.query,
        'maxDistanceKm': args.max_distance,
        'limit': args.limit,
        'centerTypes': args.center_type or [],
    }
    if args.embedding_weight is not None or args.rule_weight is not None:
        request['weights'] = {'embedding': args.embedding_weight, 'rule': args.rule_weight}
    if args.symptom or args.prefer_free or args.prefer_online or args.age_group or args.counseling_type:
        request['userProfile'] = {
            'symptoms': args.symptom or [],
            'preferFree': args.prefer_free,
            'preferOnline': args.prefer_online,
            'ageGroup': args.age_group,
            'preferredCounselingType': args.counseling_type,
        }
    return request


def run_recommend(ctx: AppContext, args) -> int:
    try:
        result = ctx.recommendation_service.recommend(build_request(args), cancel_event=cancel_event)
    except ValidationError as e:
        print(json.dumps(e.to_dict(), ensure_ascii=False, indent=2))
        return 2
    except RecommendationEngineError as e:
        logger.error(f"Recommendation failed: {e.log_fields()}")
        print(json.dumps(e.to_dict(), ensure_ascii=False, indent=2))
        return 1

    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return 0


def run_health(ctx: AppContext, args) -> int:
    status = ctx.recommendation_service.check_health()
    print(json.dumps(status.to_dict(), indent=2))
    return 0 if status.status.value != "unavailable" else 1


def run_clear_cache(ctx: AppContext, args) -> int:
    if ctx.cache is None and ctx.result_cache is None:
        logger.warning("Cache is disabled, nothing to clear")
        return 0

    stats = {}
    if ctx.cache is not None:
        if args.text:
            removed = ctx.cache.invalidate(args.text)
            logger.info(f"Invalidated cached embedding: {removed}")
        else:
            deleted = ctx.cache.clear_all()
            logger.info(f"Deleted {deleted} cached embeddings")
        stats['embeddings'] = ctx.cache.stats()

    # Ranked responses are cleared even when only one embedding is invalidated
    if ctx.result_cache is not None:
        deleted = ctx.result_cache.clear_all()
        logger.info(f"Deleted {deleted} cached recommendations")
        stats['recommendations'] = ctx.result_cache.stats()

    print(json.dumps(stats, indent=2))
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Mental-health center recommendation engine")
    parser.add_argument('--config', type=str, default='config.yaml', help='Path to config.yaml')
    subparsers = parser.add_subparsers(dest='command', required=True)

    recommend = subparsers.add_parser('recommend', help='Rank centers near a location')
    recommend.add_argument('--lat', type=float, required=True)
    recommend.add_argument('--lng', type=float, required=True)
    recommend.add_argument('--query', type=str, default=None, help='Free-text description of the concern')
    recommend.add_argument('--max-distance', type=float, default=None, help='Search radius in km')
    recommend.add_argument('--limit', type=int, default=None)
    recommend.add_argument('--embedding-weight', type=float, default=None)
    recommend.add_argument('--rule-weight', type=float, default=None)
    recommend.add_argument('--center-type', action='append', help='Restrict to a center type (repeatable)')
    recommend.add_argument('--symptom', action='append', help='Symptom tag (repeatable)')
    recommend.add_argument('--age-group', type=str, default=None)
    recommend.add_argument('--counseling-type', type=str, default=None)
    recommend.add_argument('--prefer-free', action='store_true')
    recommend.add_argument('--prefer-online', action='store_true')
    recommend.set_defaults(handler=run_recommend)

    health = subparsers.add_parser('health', help='Probe the embedding provider and vector store')
    health.set_defaults(handler=run_health)

    clear_cache = subparsers.add_parser('clear-cache', help='Delete cached query embeddings and ranked responses')
    clear_cache.add_argument('--text', type=str, default=None, help='Invalidate this query embedding instead of all embeddings')
    clear_cache.set_defaults(handler=run_clear_cache)

    args = parser.parse_args(argv)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    config = load_config(args.config)
    ctx = AppContext.build(config)
    try:
        return args.handler(ctx, args)
    finally:
        ctx.close()


if __name__ == "__main__":
    sys.exit(main())
