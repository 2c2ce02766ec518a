class BalancerError(RuntimeError):
    pass


class NoAvailableServer(BalancerError):
    def __init__(self, message: str = "No available server"):
        super().__init__(message)


class HashingUnavailable(BalancerError):
    pass
