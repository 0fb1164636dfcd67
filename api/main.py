"""
FastAPI Main Application

Memory service used by the conversation bridge: it injects memory context
before inference and records each turn afterwards.

Run with: uvicorn api.main:app --port 8000
"""

import sys
from pathlib import Path
from datetime import datetime

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Import dependencies
from api import dependencies
from utils.config import load_memory_config
from utils.logger import get_logger

# Import route modules
from api.routes import memory

logger = get_logger('api.main')


# ============================================
# FASTAPI APP SETUP
# ============================================

app = FastAPI(
    title="Recall Memory API",
    description="Persistent conversation memory with salience decay",
    version="1.0.0"
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# STARTUP & SHUTDOWN
# ============================================

@app.on_event("startup")
async def startup_event():
    """Open the store, build the manager and start the decay sweeper"""
    from modules.memory import MemoryManager, DecaySweeper

    try:
        logger.info("Starting memory service...")

        config = load_memory_config()

        # A manager may already be provided (embedding process or tests)
        if dependencies.memory_manager is None:
            dependencies.memory_manager = MemoryManager.from_config(config)
            logger.info(f"Memory store opened: {config.db_path}")

        # First sweep runs immediately, then every sweep_interval_seconds
        sweeper = DecaySweeper(dependencies.memory_manager.store, config)
        sweeper.start()
        dependencies.decay_sweeper = sweeper

        logger.info("✅ Memory service ready")

    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the sweeper and close the store"""
    logger.info("Shutting down memory service...")

    if dependencies.decay_sweeper is not None:
        await dependencies.decay_sweeper.stop()
        dependencies.decay_sweeper = None

    if dependencies.memory_manager is not None:
        dependencies.memory_manager.store.close()
        dependencies.memory_manager = None


# ============================================
# REGISTER ROUTES
# ============================================

# Memory routes
app.include_router(memory.router)


# ============================================
# ROOT ENDPOINTS
# ============================================

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "Recall Memory API",
        "version": "1.0.0",
        "status": "ready" if dependencies.memory_manager else "starting",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "context": "/api/memory/context",
            "turns": "/api/memory/turns",
            "stats": "/api/memory/stats",
            "list": "/api/memory/owners/{owner}"
        }
    }


@app.get("/health")
async def health_check():
    """Health check"""
    sweeper = dependencies.get_decay_sweeper()

    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service_ready": dependencies.memory_manager is not None,
        "sweeper_running": bool(sweeper and sweeper.running),
        "sweeps_completed": sweeper.runs if sweeper else 0
    }


# ============================================
# MAIN
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
