"""Walk a guardian and their child through the connection workflow."""

from __future__ import annotations

import argparse
from pathlib import Path

from care_connections import bootstrap, configure_logging
from care_connections.config import Settings
from care_connections.identity import InMemoryUserDirectory
from care_connections.models import User, UserRole


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a demo connection workflow.")
    parser.add_argument("--sqlite-path", type=Path, help="Optional SQLite file to persist to.")
    parser.add_argument("--log-level", help="Logging level (default: CARE_CONNECTIONS_LOG_LEVEL or INFO).")
    args = parser.parse_args()

    settings = Settings(sqlite_path=args.sqlite_path) if args.sqlite_path else Settings()
    configure_logging(args.log_level or settings.log_level)

    users = InMemoryUserDirectory(
        [
            User(id="admin", role=UserRole.ADMIN, name="Admin"),
            User(id="dr-lee", role=UserRole.THERAPIST, name="Dr Lee"),
            User(id="maria", role=UserRole.GUARDIAN, name="Maria"),
            User(id="sam", role=UserRole.CHILD, guardian_id="maria", name="Sam"),
        ]
    )
    services = bootstrap(users, settings=settings)
    requests, connections = services.requests, services.connections

    request = requests.create_request(
        "maria", "dr-lee", None, "guardian_to_therapist", "Looking for family support."
    )
    requests.process_request(request.id, "approve", "dr-lee")

    child_request = requests.create_request("maria", "dr-lee", "sam", "guardian_child_assignment")
    print(f"Pending for dr-lee: {len(requests.get_pending_requests('dr-lee'))}")
    requests.process_request(child_request.id, "approve", "dr-lee")

    print("\nActive connections for dr-lee:")
    for connection in connections.get_therapist_connections("dr-lee"):
        print(f"- {connection.client_id} ({connection.client_type.value}, {connection.connection_type.value})")

    print(f"\nConnection stats: {connections.statistics()}")
    print(f"Request stats: {requests.statistics()}")


if __name__ == "__main__":
    main()
