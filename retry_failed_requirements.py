"""Re-run requirement extraction for documents that failed or were never processed."""

import argparse
import asyncio
import logging

from redyce.bootstrap import build_services
from redyce.config import configure_logging, get_config
from redyce.models import ExtractionStatus

logger = logging.getLogger(__name__)


async def retry_project(project_id: str, user_id: str) -> None:
    services = build_services(get_config())
    try:
        failed = await asyncio.to_thread(
            services.documents.list_documents, project_id, [ExtractionStatus.ERROR]
        )
        for document in failed:
            logger.info(f"Re-enqueueing {document.name}: {document.requirement_error_message}")
            await services.extraction.enqueue_document(document.id)

        result = await services.extraction.extract_for_project(project_id, user_id)
        print(
            f"Project {project_id}: {result.processed_documents}/{result.total_documents} documents processed, "
            f"{result.total_requirements} requirements created"
            + (" (paused, a high priority job is running)" if result.paused else "")
        )
    finally:
        await services.close()


async def retry_all(user_id: str) -> None:
    services = build_services(get_config())
    try:
        run = await services.backfill.run(user_id, include_errors=True)
        await services.backfill.wait(run.id)

        print(f"Backfill {run.id}: {len(run.results)}/{run.total_documents} documents processed")
        for failure in run.failed:
            print(f"  ERROR {failure.name}: {failure.error}")
    finally:
        await services.close()


def main():
    parser = argparse.ArgumentParser(description="Retry failed requirement extractions")
    parser.add_argument("--user", "-u", required=True, help="User the AI usage is attributed to")
    parser.add_argument("--project", "-p", help="Project to retry (all tender documents if omitted)")
    args = parser.parse_args()

    configure_logging(get_config())

    if args.project:
        asyncio.run(retry_project(args.project, args.user))
    else:
        asyncio.run(retry_all(args.user))


if __name__ == "__main__":
    main()
