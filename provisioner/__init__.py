from .build import (
	ProvisionError,
	ConfigError,
	NetworkError,
	ExtractionError,
	BuildError,
	loadConfig,
	fetch,
	extract,
	buildAndInstall,
	provision,
	main,
)
