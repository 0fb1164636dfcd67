#!/usr/bin/env python3
"""
Memory CLI Tool

Command-line interface for inspecting and maintaining the memory store.

Usage:
    python memory_cli.py --stats                            # Show all stats
    python memory_cli.py --list OWNER                       # Newest memories for an owner
    python memory_cli.py --search "query" --owner OWNER     # Full-text search (no reinforcement)
    python memory_cli.py --context "message" --owner OWNER  # Preview the injected context block

    # Maintenance
    python memory_cli.py --sweep                            # Run one decay sweep now
    python memory_cli.py --verify                           # Check the search index
    python memory_cli.py --rebuild-index                    # Repopulate the search index
"""

import sys
import argparse
from dataclasses import replace
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from modules.memory import (
    SQLStore, MemoryManager, MemorySearchError, half_life_cycles, cycles_until_deleted
)
from utils.config import load_memory_config


def open_store(args) -> SQLStore:
    """Open the configured store (no startup backup for CLI sessions)"""
    config = replace(load_memory_config(), backup_on_startup=False)
    if args.db:
        config.db_path = args.db

    store = SQLStore(config=config)
    store.initialize()
    return store


# ============================================
# INSPECTION COMMANDS
# ============================================

def show_stats(args):
    """Show memory statistics"""
    store = open_store(args)
    stats = store.get_stats()
    config = store.config

    print("\n" + "="*60)
    print("📊 MEMORY SYSTEM STATISTICS")
    print("="*60)
    print(f"Database:            {store.db_path}")
    print(f"Total Memories:      {stats['total_memories']}")
    print(f"Owners:              {stats['owners']}")
    print(f"  Semantic:          {stats['semantic']}")
    print(f"  Episodic:          {stats['episodic']}")
    print(f"Average Salience:    {stats['average_salience']:.2f}")
    print(f"Indexed Entries:     {stats['indexed']}")

    print("\n⏳ Decay:")
    print(f"  Rate per sweep:    {config.decay_rate}")
    print(f"  Deletion floor:    {config.min_salience}")
    print(f"  Half-life:         {half_life_cycles(config.decay_rate):.0f} sweeps")
    print(f"  Unreinforced life: "
          f"{cycles_until_deleted(config.decay_rate, config.min_salience, config.initial_salience):.0f} sweeps")
    print("="*60)

    store.close()


def list_memories(args):
    """List newest memories for an owner"""
    store = open_store(args)
    memories = store.list_for_display(args.list, limit=args.limit)

    if not memories:
        print(f"📭 No memories stored for {args.list}")
        store.close()
        return

    print(f"\n🧠 Memories for {args.list} (showing {len(memories)}):")
    print("="*80)

    for i, memory in enumerate(memories, 1):
        print(f"{i}. [{memory.sector.value}] ({memory.salience:.2f}) {memory.snippet(100)}")

    print("="*80)
    store.close()


def search_memory(args):
    """Full-text search within one owner's memories"""
    if not args.owner:
        print("❌ Please provide --owner")
        return

    store = open_store(args)

    try:
        results = store.search(args.owner, args.search, limit=args.limit)
    except MemorySearchError as e:
        print(f"❌ Search error: {e}")
        store.close()
        return

    if not results:
        print(f"📭 No results found for: {args.search}")
        store.close()
        return

    print(f"\n🔍 Search Results for: '{args.search}'")
    print("="*80)

    for i, memory in enumerate(results, 1):
        print(f"{i}. [{memory.sector.value}] ({memory.salience:.2f}) {memory.snippet(100)}")

    print("="*80)
    store.close()


def preview_context(args):
    """Show the context block the next turn would receive (reinforces it)"""
    if not args.owner:
        print("❌ Please provide --owner")
        return

    store = open_store(args)
    manager = MemoryManager(store, config=store.config)
    context = manager.build_context(args.owner, args.context)

    if not context:
        print(f"📭 No memory context for {args.owner}")
    else:
        print(context)

    store.close()


# ============================================
# MAINTENANCE COMMANDS
# ============================================

def run_sweep(args):
    """Run one decay sweep"""
    store = open_store(args)
    config = store.config

    print(f"\n🗑️  Decay sweep (rate={config.decay_rate}, floor={config.min_salience})")
    print("="*60)

    result = store.decay_sweep(config.decay_rate, config.min_salience)

    print(f"Decayed: {result.decayed}")
    print(f"Deleted: {result.deleted}")
    print("✅ Sweep complete!")
    store.close()


def verify_index(args):
    """Check that the search index mirrors the memory table"""
    store = open_store(args)

    if store.verify_index():
        print(f"✅ Search index consistent ({store.count()} memories)")
        store.close()
        return

    store.close()
    print("❌ Search index out of sync (run --rebuild-index)")
    sys.exit(1)


def rebuild_index(args):
    """Repopulate the search index"""
    store = open_store(args)
    indexed = store.rebuild_index()
    print(f"✅ Search index rebuilt ({indexed} entries)")
    store.close()


# ============================================
# MAIN
# ============================================

def main():
    parser = argparse.ArgumentParser(
        description="Memory CLI Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    # Global options
    parser.add_argument('--db', default=None, help='Database path (default: from config)')
    parser.add_argument('--owner', type=str, help='Owner (conversation) ID')
    parser.add_argument('--limit', type=int, default=10, help='Result limit')

    # Inspection
    parser.add_argument('--stats', action='store_true', help='Show statistics')
    parser.add_argument('--list', type=str, metavar='OWNER', help='List memories for an owner')
    parser.add_argument('--search', type=str, metavar='QUERY', help='Search memories')
    parser.add_argument('--context', type=str, metavar='MESSAGE', help='Preview memory context')

    # Maintenance
    parser.add_argument('--sweep', action='store_true', help='Run one decay sweep')
    parser.add_argument('--verify', action='store_true', help='Verify the search index')
    parser.add_argument('--rebuild-index', action='store_true', help='Rebuild the search index')

    args = parser.parse_args()

    # Execute commands
    if args.stats:
        show_stats(args)
    elif args.list:
        list_memories(args)
    elif args.search:
        search_memory(args)
    elif args.context:
        preview_context(args)
    elif args.sweep:
        run_sweep(args)
    elif args.verify:
        verify_index(args)
    elif args.rebuild_index:
        rebuild_index(args)
    else:
        parser.print_help()
        print("\n💡 Examples:")
        print("  python memory_cli.py --stats")
        print("  python memory_cli.py --list 123456789")
        print("  python memory_cli.py --search 'dark mode' --owner 123456789")
        print("  python memory_cli.py --context 'what theme do I like?' --owner 123456789")
        print("  python memory_cli.py --sweep")

if __name__ == "__main__":
    main()
