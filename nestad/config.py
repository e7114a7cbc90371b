"""
nestAD Configuration Module
===========================

Centralized configuration management for the nestAD scanner.

Design Decision:
- Configuration is a dataclass tree that is passed through the pipeline
- Each component extracts only the sub-configuration it needs
- The only tunable of the analysis itself is the maximum nesting depth
"""

import os
from dataclasses import dataclass, field
from typing import Optional


DEFAULT_MAX_DEPTH = 5


@dataclass
class LDAPConfig:
    """Configuration for live LDAP collection.
    
    Attributes:
        use_ssl: Whether to use LDAPS (port 636) vs LDAP (port 389)
        port: Explicit port (auto-detected from use_ssl when None)
        page_size: Page size for paged LDAP searches
        timeout: Connect/receive timeout in seconds
    """
    use_ssl: bool = False
    port: Optional[int] = None  # Auto-detect based on use_ssl
    page_size: int = 1000
    timeout: int = 30
    
    def __post_init__(self):
        if self.port is None:
            self.port = 636 if self.use_ssl else 389


@dataclass
class AnalysisConfig:
    """Configuration for the nesting analysis.
    
    Attributes:
        max_depth: Maximum nesting depth before a chain is reported
        workers: Number of scan roots explored concurrently (1 = sequential)
        timeout: Global scan timeout in seconds (None = unlimited)
    """
    max_depth: int = DEFAULT_MAX_DEPTH
    workers: int = 1
    timeout: Optional[float] = None
    
    def __post_init__(self):
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be a positive integer, got {self.max_depth}")
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")


@dataclass
class OutputConfig:
    """Configuration for output and reporting.
    
    Attributes:
        output_dir: Directory for output files
        failures_filename: CSV file receiving unresolved group lookups
        json_filename: Full JSON scan report
        generate_json: Whether to write the JSON scan report
    """
    output_dir: str = "output"
    failures_filename: str = "nesting_failures.csv"
    json_filename: str = "nestad_results.json"
    generate_json: bool = True


@dataclass
class NestadConfig:
    """Main configuration container for nestAD.
    
    Usage:
        config = NestadConfig()  # Uses all defaults
        config = NestadConfig(analysis=AnalysisConfig(max_depth=3))
    """
    ldap: LDAPConfig = field(default_factory=LDAPConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    
    # Verbosity level for logging
    verbose: bool = True
    debug: bool = False
    
    @classmethod
    def from_dict(cls, config_dict: dict) -> "NestadConfig":
        """Create configuration from a dictionary.
        
        Useful for loading from JSON files or CLI arguments.
        """
        return cls(
            ldap=LDAPConfig(**config_dict.get("ldap", {})),
            analysis=AnalysisConfig(**config_dict.get("analysis", {})),
            output=OutputConfig(**config_dict.get("output", {})),
            verbose=config_dict.get("verbose", True),
            debug=config_dict.get("debug", False)
        )
    
    def to_dict(self) -> dict:
        """Convert configuration to dictionary for serialization."""
        from dataclasses import asdict
        return asdict(self)


def password_from_env() -> Optional[str]:
    """Read the LDAP bind password from the environment, if set."""
    return os.environ.get("NESTAD_PASSWORD")


# Default global configuration instance
_default_config: Optional[NestadConfig] = None


def get_config() -> NestadConfig:
    """Get the global configuration instance."""
    global _default_config
    if _default_config is None:
        _default_config = NestadConfig()
    return _default_config


def set_config(config: NestadConfig) -> None:
    """Set the global configuration instance."""
    global _default_config
    _default_config = config
