import argparse
import uvicorn
from balancer.config import STRATEGIES, BalancerConfig
from balancer.service import create_app

def main():
    p = argparse.ArgumentParser()
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8100)
    p.add_argument("--servers", default="", help="Comma list of server identifiers, e.g. 10.0.0.1:80,10.0.0.2:80")
    p.add_argument("--strategy", choices=STRATEGIES, default="ketama")
    p.add_argument("--cache-rings", action="store_true", help="Reuse rings for an unchanged server list")
    p.add_argument("--debug", action="store_true")
    args = p.parse_args()

    servers = [x.strip() for x in args.servers.split(",") if x.strip()]
    app = create_app(BalancerConfig(
        servers=servers,
        strategy=args.strategy,
        cache_rings=args.cache_rings,
        debug=args.debug,
    ))

    uvicorn.run(app, host=args.host, port=args.port)

if __name__ == "__main__":
    main()
