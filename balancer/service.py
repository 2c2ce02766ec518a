import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .config import BalancerConfig
from .errors import NoAvailableServer
from .load_balancer import LoadBalancer, build_balancers
from .logging_setup import setup_logging
from .models import Invocation, Server

log = logging.getLogger("service")


class SelectReq(BaseModel):
    key: str
    servers: Optional[List[str]] = None
    strategy: Optional[str] = None
    count: int = 1


class RingReq(BaseModel):
    servers: Optional[List[str]] = None
    strategy: Optional[str] = None


def create_app(cfg: BalancerConfig) -> FastAPI:
    setup_logging(cfg.debug)
    balancers = build_balancers(cfg)
    if cfg.strategy not in balancers:
        raise ValueError(f"unknown strategy {cfg.strategy!r}")

    app = FastAPI(title="Ring Balancer")

    def pick(name: Optional[str]) -> LoadBalancer:
        name = name or cfg.strategy
        lb = balancers.get(name)
        if lb is None:
            raise HTTPException(status_code=400, detail={"error": "unknown_strategy", "strategy": name})
        return lb

    def pool(urls: Optional[List[str]]) -> List[Server]:
        return [Server(u) for u in (cfg.servers if urls is None else urls)]

    @app.on_event("startup")
    async def _startup():
        log.info("Ring balancer ready, strategy=%s servers=%s cache=%s", cfg.strategy, cfg.servers, cfg.cache_rings)

    @app.get("/health")
    def health():
        return {"ok": True, "strategy": cfg.strategy, "servers": cfg.servers}

    @app.post("/select")
    def select(req: SelectReq):
        name = req.strategy or cfg.strategy
        lb = pick(name)
        servers = pool(req.servers)
        inv = Invocation(req.key)
        try:
            candidates = lb.select_many(servers, inv, max(1, req.count))
        except NoAvailableServer:
            raise HTTPException(status_code=503, detail={"error": "no_available_server", "key": req.key})

        return {
            "ok": True,
            "key": req.key,
            "strategy": name,
            "position": lb.strategy.position_for(req.key),
            "server": candidates[0].url,
            "candidates": [s.url for s in candidates],
        }

    @app.post("/debug/ring")
    def debug_ring(req: RingReq):
        lb = pick(req.strategy)
        ring = lb.ring_for(pool(req.servers))
        return {
            "size": len(ring),
            "entries": [{"position": p, "server": s.url} for p, s in ring],
        }

    return app
