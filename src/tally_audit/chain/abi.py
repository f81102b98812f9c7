"""
Minimal ABI fragments for the Livepeer protocol contracts read by the audit.

Only the view functions the tally needs are declared.
"""

ROUNDS_MANAGER_ADDRESS = "0x3984fc4ceeef1739135476f625d36d6c35c40dc3"
BONDING_MANAGER_ADDRESS = "0x511bc4556d823ae99630ae8de28b9b80df90ea2e"

# BondingManager.TranscoderStatus
TRANSCODER_STATUS_NOT_REGISTERED = 0
TRANSCODER_STATUS_REGISTERED = 1

ROUNDS_MANAGER_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "currentRound",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

BONDING_MANAGER_ABI = [
    {
        "constant": True,
        "inputs": [
            {"name": "_delegator", "type": "address"},
            {"name": "_endRound", "type": "uint256"},
        ],
        "name": "pendingStake",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "_transcoder", "type": "address"}],
        "name": "transcoderStatus",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "_delegator", "type": "address"}],
        "name": "getDelegator",
        "outputs": [
            {"name": "bondedAmount", "type": "uint256"},
            {"name": "fees", "type": "uint256"},
            {"name": "delegateAddress", "type": "address"},
            {"name": "delegatedAmount", "type": "uint256"},
            {"name": "startRound", "type": "uint256"},
            {"name": "lastClaimRound", "type": "uint256"},
            {"name": "nextUnbondingLockId", "type": "uint256"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

POLL_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "endBlock",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]
