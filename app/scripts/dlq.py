"""
Inspect the order queues and replay dead-lettered orders.

Usage:
    python -m app.scripts.dlq stats                 # queue lengths
    python -m app.scripts.dlq list --limit 20       # dead-letter entries
    python -m app.scripts.dlq requeue ORDER_ID      # move back to pending
"""

import argparse
import json
import sys


def show_stats(queue):
    lengths = queue.queue_lengths()
    print("=" * 60)
    print("ORDER QUEUES")
    print("=" * 60)
    print(f"  pending:     {lengths['pending']}")
    print(f"  processing:  {lengths['processing']}")
    print(f"  dead-letter: {lengths['dead_letter']}")
    return lengths


def list_dead_letter(queue, limit=100):
    items = queue.list_dead_letter(limit=limit)
    if not items:
        print("[INFO] Dead-letter queue is empty")
        return items

    for index, item in enumerate(items, start=1):
        order_id = item.get("externalOrderId", "?")
        stage = item.get("orderStatus", "?")
        print(f"{index:>3}. order {order_id} (stage {stage})")
        print(f"     {json.dumps(item, ensure_ascii=False)[:200]}")
    return items


def requeue(queue, order_id):
    if queue.requeue_dead_letter(order_id):
        print(f"[OK] Order {order_id} moved back to the pending queue")
        return True
    print(f"[ERROR] Order {order_id} not found in the dead-letter queue")
    return False


def build_parser():
    parser = argparse.ArgumentParser(description="Order queue operator tools")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("stats", help="Show queue lengths")

    list_parser = sub.add_parser("list", help="List dead-letter entries")
    list_parser.add_argument("--limit", type=int, default=100)

    requeue_parser = sub.add_parser("requeue", help="Requeue a dead-letter order")
    requeue_parser.add_argument("order_id")
    return parser


def main(argv=None, queue=None):
    args = build_parser().parse_args(argv)

    if queue is None:
        from app import create_app
        app = create_app(start_scheduler=False)
        queue = app.extensions["order_queue"]
        # History writes made by the queue need an app context
        with app.app_context():
            return _run(args, queue)
    return _run(args, queue)


def _run(args, queue):
    if args.command == "stats":
        show_stats(queue)
        return 0
    if args.command == "list":
        list_dead_letter(queue, limit=args.limit)
        return 0
    if args.command == "requeue":
        return 0 if requeue(queue, args.order_id) else 1
    return 2


if __name__ == "__main__":
    sys.exit(main())
