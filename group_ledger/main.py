import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from group_ledger.config import settings
from group_ledger.db.database import init_db
from group_ledger.routes import groups, operators


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup resources."""
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    await init_db()
    yield


app = FastAPI(
    title='Group Ledger API',
    description='Reserve / pending balances and transaction history per chat group',
    version='0.1.0',
    lifespan=lifespan,
)

# Routes
app.include_router(groups.router, prefix='/api/groups', tags=['groups'])
app.include_router(operators.router, prefix='/api/groups', tags=['operators'])


@app.get('/health')
async def health_check():
    """Health check endpoint."""
    return {'status': 'ok', 'service': 'group-ledger'}
