"""Print the requirement extraction progress of a project."""

import argparse
import asyncio

from redyce.bootstrap import build_services
from redyce.config import configure_logging, get_config


async def check(project_id: str) -> None:
    services = build_services(get_config())
    try:
        status = await services.extraction.requirements_status(project_id)
        summary = await services.backfill.summary(project_id)
    finally:
        await services.close()

    print(f"Project {project_id}")
    print(f"  Documents:    {status.total}")
    print(f"  Done:         {status.done}")
    print(f"  Processing:   {status.processing}")
    print(f"  Waiting:      {status.waiting}")
    print(f"  Error:        {status.error}")
    print(f"  Requirements: {status.requirements_count}")

    for document in summary["documents"]:
        line = f"  - [{document['status'] or 'NOT STARTED'}] {document['name']} ({document['document_type']})"
        if document["error"]:
            line += f": {document['error']}"
        print(line)


def main():
    parser = argparse.ArgumentParser(description="Show requirement extraction status")
    parser.add_argument("project_id", help="Project to inspect")
    args = parser.parse_args()

    configure_logging(get_config())
    asyncio.run(check(args.project_id))


if __name__ == "__main__":
    main()
