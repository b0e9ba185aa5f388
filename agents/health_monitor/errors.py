class AccountExistsError(Exception):
    def __init__(self, address: str):
        super().__init__(f"Account {address} is already monitored")
        self.address = address


class AccountNotFoundError(Exception):
    def __init__(self, address: str):
        super().__init__(f"Account {address} is not monitored")
        self.address = address


class PositionNotFoundError(Exception):
    """No lending position exists on chain for the wallet."""

    def __init__(self, address: str):
        super().__init__(f"No lending position found for wallet {address}")
        self.address = address


class InvalidAddressError(ValueError):
    def __init__(self, address: str):
        super().__init__(f"Not a valid wallet address: {address!r}")
        self.address = address
