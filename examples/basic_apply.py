"""Apply the translation-app deployment against a local state file.

Runs without any cloud credentials: the local state provider simulates the
remote side and writes what it "provisions" to translation-state.json.
Run it twice to see the second apply converge with no changes.
"""

import logging
from pathlib import Path

from converge import Deployment, Engine, LocalStateProvider, ProviderRegistry

logging.basicConfig(level=logging.INFO, format="%(levelname)-7s %(name)s: %(message)s")

here = Path(__file__).parent
deployment = Deployment.from_file(here / "translation-app.yaml")

provider = LocalStateProvider(here / "translation-state.json")
engine = Engine(ProviderRegistry(default=provider))

plan = engine.plan(deployment)
print(plan.summary())
for entry in plan.entries:
    action = entry.action.value if entry.action else "?"
    print(f"  {action:>6}  {entry.resource_id}")

result = engine.apply(deployment)
print()
print(result.summary())
for name, value in result.named_outputs.items():
    print(f"  {name} = {value}")

print(f"\nProvider mutations this run: {result.mutations}")
