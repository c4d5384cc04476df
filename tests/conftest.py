import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("FUNNEL_DB_URL", "sqlite:///./test_funnel_builder.db")
os.environ.setdefault("FUNNEL_API_BASE_URL", "http://funnels.test")
os.environ.setdefault("PAGE_CATALOG_BASE_URL", "http://pages.test")
os.environ.setdefault("SIMULATION_TICK_SECONDS", "0.01")
