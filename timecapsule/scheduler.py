"""Background sweep loop: one APScheduler job per process."""
import logging

from apscheduler.schedulers.background import BackgroundScheduler

log = logging.getLogger(__name__)

JOB_ID = "capsule_sweep"


def _sweep_job(app):
    from .services.sweeper import run_sweep

    with app.app_context():
        try:
            run_sweep()
        except Exception:
            # next tick retries; leases cover anything claimed mid-crash
            app.logger.exception("capsule sweep failed")


def init_scheduler(app) -> BackgroundScheduler:
    interval = int(app.config.get("SWEEP_INTERVAL_SECONDS", 60))
    scheduler = BackgroundScheduler(daemon=True, timezone="UTC")
    scheduler.add_job(
        _sweep_job,
        "interval",
        seconds=interval,
        args=[app],
        id=JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.start()
    app.extensions["capsule_scheduler"] = scheduler
    log.info("capsule sweep scheduled every %ss", interval)
    return scheduler
