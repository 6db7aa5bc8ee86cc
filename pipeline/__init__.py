"""
Pipeline package for the camouflage detection system.

Contains:
- `config` : `DetectorConfig` heuristic parameters and service `Settings`
- `errors` : Typed failures (`InvalidInput`, `EncodingError`, ...)
- `state`  : Typed `CamouflageState` definition
- `nodes`  : LangGraph node callables operating over `CamouflageState`
- `graph`  : StateGraph builder, compiled `pipeline` and `run_visualization`
- `tools`  : LangChain tools wrapping detection and the remote vision model
"""
