from rulekeeper.cli import run

run()
