#!/usr/bin/env python3
"""Command-line interface for the Processing Inventory API.

Usage examples:
    python scripts/cli.py list --status IN_PROGRESS --search turmeric
    python scripts/cli.py get 1
    python scripts/cli.py create --crop Turmeric --lot-no 3 --procurement-ids 11 12 \\
        --method wet --done-by Ravi
    python scripts/cli.py drying 4 --day 1 --quantity 180 --moisture 22.5
    python scripts/cli.py finalize 4 --quantity 150
    python scripts/cli.py next-stage 1 --method dry --done-by Asha
    python scripts/cli.py sell 4 --qty 40
    python scripts/cli.py delete 1

The token is read from --token or the API_TOKEN environment variable.
"""

import argparse
import json
import os
import sys
from datetime import datetime, timezone

import httpx

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 30.0


def format_output(data: object) -> None:
    """Pretty-print a JSON-serialisable object."""
    print(json.dumps(data, indent=2, default=str))


def handle_response(response: httpx.Response) -> dict:
    """Return the JSON body or exit with an error message."""
    try:
        body = response.json()
    except ValueError:
        body = {"detail": response.text}

    if response.status_code >= 400:
        print(
            f"Error {response.status_code}: {body.get('detail', 'Unknown error')}",
            file=sys.stderr,
        )
        sys.exit(1)

    return body


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def cmd_list(args: argparse.Namespace, client: httpx.Client) -> None:
    """List batches with optional search, status filter and pagination."""
    params: dict[str, object] = {"page": args.page, "limit": args.limit}
    if args.search:
        params["search"] = args.search
    if args.status:
        params["status"] = args.status
    format_output(handle_response(client.get("/api/processing-batches/", params=params)))


def cmd_get(args: argparse.Namespace, client: httpx.Client) -> None:
    """Retrieve a single batch with its history."""
    format_output(handle_response(client.get(f"/api/processing-batches/{args.id}")))


def cmd_create(args: argparse.Namespace, client: httpx.Client) -> None:
    """Create a batch from procurements, with its first stage."""
    data = {
        "crop": args.crop,
        "lotNo": args.lot_no,
        "procurementIds": args.procurement_ids,
        "firstStageDetails": {
            "processMethod": args.method,
            "dateOfProcessing": args.date or _now(),
            "doneBy": args.done_by,
        },
    }
    format_output(handle_response(client.post("/api/processing-batches/", json=data)))


def cmd_delete(args: argparse.Namespace, client: httpx.Client) -> None:
    """Delete a batch (admin only)."""
    body = handle_response(client.delete(f"/api/processing-batches/{args.id}"))
    print(body["message"])


def cmd_next_stage(args: argparse.Namespace, client: httpx.Client) -> None:
    """Start the next stage of a batch."""
    data = {
        "processMethod": args.method,
        "dateOfProcessing": args.date or _now(),
        "doneBy": args.done_by,
    }
    format_output(handle_response(client.post(f"/api/processing-batches/{args.id}/stages", json=data)))


def cmd_finalize(args: argparse.Namespace, client: httpx.Client) -> None:
    """Finish an in-progress stage."""
    data = {"quantityAfterProcess": args.quantity, "dateOfCompletion": args.date or _now()}
    format_output(handle_response(client.post(f"/api/processing-stages/{args.stage_id}/finalize", json=data)))


def cmd_cancel(args: argparse.Namespace, client: httpx.Client) -> None:
    """Cancel an in-progress stage."""
    format_output(handle_response(client.post(f"/api/processing-stages/{args.stage_id}/cancel")))


def cmd_drying(args: argparse.Namespace, client: httpx.Client) -> None:
    """Record or list drying entries of a stage."""
    path = f"/api/processing-stages/{args.stage_id}/drying-entries"
    if args.day is None:
        format_output(handle_response(client.get(path)))
        return

    data: dict[str, object] = {"day": args.day, "currentQuantity": args.quantity}
    for field, value in (
        ("temperature", args.temperature),
        ("humidity", args.humidity),
        ("moisture", args.moisture),
        ("notes", args.notes),
    ):
        if value is not None:
            data[field] = value
    format_output(handle_response(client.post(path, json=data)))


def cmd_sell(args: argparse.Namespace, client: httpx.Client) -> None:
    """Record a sale from a finished stage."""
    data = {"processingStageId": args.stage_id, "quantitySold": args.qty, "dateOfSale": args.date or _now()}
    format_output(handle_response(client.post("/api/sales/", json=data)))


def cmd_delete_sale(args: argparse.Namespace, client: httpx.Client) -> None:
    """Delete a sale (admin only)."""
    resp = client.delete(f"/api/sales/{args.sale_id}")
    if resp.status_code == 204:
        print(f"Sale {args.sale_id} deleted successfully.")
    else:
        handle_response(resp)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cli.py",
        description="Processing Inventory CLI",
    )
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help=f"API base URL (default: {DEFAULT_BASE_URL})",
    )
    parser.add_argument("--token", default=os.getenv("API_TOKEN"), help="JWT (default: $API_TOKEN)")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    # --- list ---
    p_list = sub.add_parser("list", help="List batches")
    p_list.add_argument("--search", help="Match batch code or crop")
    p_list.add_argument(
        "--status",
        choices=["IN_PROGRESS", "FINISHED", "CANCELLED", "SOLD_OUT", "NO_STAGES"],
        help="Effective status of the latest stage",
    )
    p_list.add_argument("--page", type=int, default=1, help="Page number")
    p_list.add_argument("--limit", type=int, default=10, help="Page size (max 100)")

    # --- get ---
    p_get = sub.add_parser("get", help="Get batch by ID")
    p_get.add_argument("id", type=int, help="Batch ID")

    # --- create ---
    p_create = sub.add_parser("create", help="Create a batch from procurements")
    p_create.add_argument("--crop", required=True)
    p_create.add_argument("--lot-no", type=int, required=True)
    p_create.add_argument("--procurement-ids", type=int, nargs="+", required=True)
    p_create.add_argument("--method", required=True, help="Process method of stage P1")
    p_create.add_argument("--done-by", required=True)
    p_create.add_argument("--date", help="ISO 8601 processing date (default: now)")

    # --- delete ---
    p_delete = sub.add_parser("delete", help="Delete a batch")
    p_delete.add_argument("id", type=int, help="Batch ID")

    # --- next-stage ---
    p_next = sub.add_parser("next-stage", help="Start the next stage of a batch")
    p_next.add_argument("id", type=int, help="Batch ID")
    p_next.add_argument("--method", required=True)
    p_next.add_argument("--done-by", required=True)
    p_next.add_argument("--date", help="ISO 8601 processing date (default: now)")

    # --- finalize ---
    p_finalize = sub.add_parser("finalize", help="Finish an in-progress stage")
    p_finalize.add_argument("stage_id", type=int, help="Stage ID")
    p_finalize.add_argument("--quantity", type=float, required=True, help="Quantity after process")
    p_finalize.add_argument("--date", help="ISO 8601 completion date (default: now)")

    # --- cancel ---
    p_cancel = sub.add_parser("cancel", help="Cancel an in-progress stage")
    p_cancel.add_argument("stage_id", type=int, help="Stage ID")

    # --- drying ---
    p_drying = sub.add_parser("drying", help="List drying entries, or record one with --day")
    p_drying.add_argument("stage_id", type=int, help="Stage ID")
    p_drying.add_argument("--day", type=int)
    p_drying.add_argument("--quantity", type=float, help="Current quantity")
    p_drying.add_argument("--temperature", type=float)
    p_drying.add_argument("--humidity", type=float)
    p_drying.add_argument("--moisture", type=float)
    p_drying.add_argument("--notes")

    # --- sell ---
    p_sell = sub.add_parser("sell", help="Sell from a finished stage")
    p_sell.add_argument("stage_id", type=int, help="Stage ID")
    p_sell.add_argument("--qty", type=float, required=True, help="Quantity sold")
    p_sell.add_argument("--date", help="ISO 8601 sale date (default: now)")

    # --- delete-sale ---
    p_delete_sale = sub.add_parser("delete-sale", help="Delete a sale")
    p_delete_sale.add_argument("sale_id", type=int, help="Sale ID")

    return parser


def main() -> None:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "drying" and args.day is not None and args.quantity is None:
        parser.error("drying --day requires --quantity")

    dispatch = {
        "list": cmd_list,
        "get": cmd_get,
        "create": cmd_create,
        "delete": cmd_delete,
        "next-stage": cmd_next_stage,
        "finalize": cmd_finalize,
        "cancel": cmd_cancel,
        "drying": cmd_drying,
        "sell": cmd_sell,
        "delete-sale": cmd_delete_sale,
    }

    handler = dispatch.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    headers = {"Authorization": f"Bearer {args.token}"} if args.token else {}
    with httpx.Client(base_url=args.base_url, headers=headers, timeout=DEFAULT_TIMEOUT) as client:
        handler(args, client)


if __name__ == "__main__":
    main()
