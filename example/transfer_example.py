import asyncio
import logging

from userop_pipeline import (
    Erc20Transfer,
    LocalAccountSigner,
    UserOperationPipeline,
    load_config_from_env,
)

# Reads USEROP_PROVIDER, USEROP_CHAIN, USEROP_API_KEY, USEROP_OWNERS, ... from .env
owner_pk = "0xxxx"  # Replace with the Safe owner's private key

transfer = Erc20Transfer(
    token="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",  # Sepolia USDC
    to="0x1234567890123456789012345678901234567890",
    amount=100_000,
)


async def main():
    config = load_config_from_env(".env")
    async with UserOperationPipeline.from_config(config, [LocalAccountSigner(owner_pk)]) as pipeline:
        print("Safe address:", await pipeline.builder.sender())
        return await pipeline.execute(transfer, timeout=300)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    outcome = asyncio.run(main())
    print("State:", outcome.state.value)
    if outcome.receipt is not None:
        print("Transaction:", outcome.receipt.transaction_hash)
