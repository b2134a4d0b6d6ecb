import logging
import sys

from slowdecay.errors import SlowDecayError
from slowdecay.profiles import slow_decay_profiles
from slowdecay.settings import parse_args
from slowdecay.store import load_alignment_results


def run(settings, logger: logging.Logger) -> dict:
    results = []
    for path in settings.inputs:
        loaded = load_alignment_results(path)
        logger.info("Loaded alignment results: path=%s results=%d", path, len(loaded))
        results.extend(loaded)

    profiles = slow_decay_profiles(
        results,
        az_range=settings.az_range,
        gc_range=settings.gc_range,
        output_dir=settings.output_dir,
    )

    runs = {profile.run_name for profile in profiles}
    logger.info(
        "Run complete: results=%d runs_with_profiles=%d profiles=%d output_dir=%s",
        len(results),
        len(runs),
        len(profiles),
        settings.output_dir,
    )
    return {
        "results": len(results),
        "runs": len(runs),
        "profiles": len(profiles),
    }


def main() -> int:
    settings = parse_args()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger("slowdecay.main")
    logger.info("Starting profile extraction")

    try:
        run(settings, logger)
    except SlowDecayError as exc:
        logger.error("Profile extraction failed: %s", exc)
        return 1
    except OSError:
        logger.exception("Profile extraction failed on file access")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
