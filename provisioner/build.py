#! /usr/bin/env python3

import argparse
import functools
import os
import subprocess
import sys
import tarfile
import zlib
from urllib.error import URLError
from urllib.request import urlretrieve

"""
Config file format
==================

Each project config consists of a `config.py` file beside this module,
which must evaluate to a single dictionary containing the config. This
dictionary specifies everything necessary to provision the project.

Dictionary fields
-----------------

- downloads : List containing the source archives to be downloaded. The
  commands are run inside the top-level directory of the first one.
- url : URL for the project website.
- environment : Dictionary of environment variables to provide to the
  commands. Values may reference host variables as `$VAR`.
- commands : List containing the configure, build and install commands,
  run in order using a shell.

### Variable substitution

Any configuration value may reference variables using Python's standard
`{variableName}` string substitution syntax. Variables may contain nested
references to other variables.

- variables : Dictionary of variables for use in this config.
"""

class ProvisionError( Exception ) :

	exitStatus = 1

class ConfigError( ProvisionError ) :

	pass

class NetworkError( ProvisionError ) :

	pass

class ExtractionError( ProvisionError ) :

	pass

class BuildError( ProvisionError ) :

	def __init__( self, command, returnCode ) :

		ProvisionError.__init__( self, "Command \"{}\" failed with exit status {}".format( command, returnCode ) )
		self.command = command
		# A shell killed by a signal reports as 128 + signal number.
		self.exitStatus = returnCode if returnCode > 0 else 128 - returnCode

def __projectDir( project, projectRoot = None ) :

	if projectRoot is None :
		projectRoot = os.path.dirname( os.path.abspath( __file__ ) )

	return os.path.join( projectRoot, project )

def __loadJSON( project, projectRoot ) :

	# Really we want JSON to enforce a "pure data" config,
	# but JSON doesn't allow comments so we use Python
	# instead, evaluated without access to any modules.

	configFile = os.path.join( __projectDir( project, projectRoot ), "config.py" )
	try :
		with open( configFile ) as f :
			config = f.read()
	except OSError as e :
		raise ConfigError( "Unable to read config for {} : {}".format( project, e ) ) from e

	try :
		return eval( config, { "__builtins__" : {} } )
	except Exception as e :
		raise ConfigError( "Unable to evaluate config for {} : {}".format( project, e ) ) from e

def __checkConfig( project, config ) :

	if not isinstance( config, dict ) :
		raise ConfigError( "{} config is not a dictionary".format( project ) )

	if "url" not in config :
		raise ConfigError( "{} is missing the \"url\" item".format( project ) )

	for key in ( "downloads", "commands" ) :
		if not isinstance( config.get( key ), list ) or not config[key] :
			raise ConfigError( "{} has no \"{}\" list".format( project, key ) )

	for key in ( "variables", "environment" ) :
		if not isinstance( config.get( key, {} ), dict ) :
			raise ConfigError( "{} \"{}\" is not a dictionary".format( project, key ) )

def __substitute( config, variables ) :

	def substituteWalk( o ) :

		if isinstance( o, dict ) :
			return { substituteWalk( k ) : substituteWalk( v ) for k, v in o.items() }
		elif isinstance( o, list ) :
			return [ substituteWalk( x ) for x in o ]
		elif isinstance( o, tuple ) :
			return tuple( substituteWalk( x ) for x in o )
		elif isinstance( o, str ) :
			while True :
				s = o.format( **variables )
				if s == o :
					return s
				else :
					o = s
		else :
			return o

	return substituteWalk( config )

def loadConfig( project = "LibSodium", projectRoot = None ) :

	config = __loadJSON( project, projectRoot )
	__checkConfig( project, config )

	try :
		return __substitute( config, config.get( "variables", {} ) )
	except ( KeyError, IndexError, ValueError, TypeError, AttributeError ) as e :
		raise ConfigError( "Bad variable reference in {} config : {}".format( project, e ) ) from e

def __preserveCurrentDirectory( f ) :

	@functools.wraps( f )
	def decorated( *args, **kw ) :
		d = os.getcwd()
		try :
			return f( *args, **kw )
		finally :
			os.chdir( d )

	return decorated

def fetch( url, archiveDir = "." ) :

	if not os.path.exists( archiveDir ) :
		os.makedirs( archiveDir )

	archivePath = os.path.join( archiveDir, os.path.basename( url ) )

	sys.stderr.write( "Retrieving URL: \"{}\" to \"{}\"\n".format( url, archivePath ) )
	try :
		archivePath, headers = urlretrieve( url, archivePath )
	except ( URLError, OSError, ValueError ) as e :
		raise NetworkError( "Unable to retrieve \"{}\" : {}".format( url, e ) ) from e

	if os.path.getsize( archivePath ) == 0 :
		os.unlink( archivePath )
		raise NetworkError( "Retrieved an empty file from \"{}\"".format( url ) )

	# Download hosts answer missing releases with an
	# error page rather than the archive.
	if headers.get_content_type() == "text/html" :
		os.unlink( archivePath )
		raise NetworkError( "Retrieved a web page instead of an archive from \"{}\"".format( url ) )

	return archivePath

def extract( archive ) :

	sys.stderr.write( "Extracting \"{}\"\n".format( archive ) )
	try :
		with tarfile.open( archive, "r:*" ) as f :
			f.extractall( filter = "data" )
			files = f.getnames()
	except ( tarfile.TarError, EOFError, zlib.error, OSError ) as e :
		raise ExtractionError( "Unable to extract \"{}\" : {}".format( archive, e ) ) from e

	if not files :
		raise ExtractionError( "Archive \"{}\" is empty".format( archive ) )

	dirs = { os.path.normpath( f ).split( os.sep )[0] for f in files }
	if len( dirs ) == 1 and os.path.isdir( next( iter( dirs ) ) ) :
		# Well behaved archive with single top-level
		# directory.
		return os.path.abspath( next( iter( dirs ) ) )
	else :
		# Badly behaved archive
		return os.getcwd()

@__preserveCurrentDirectory
def buildAndInstall( directory, config ) :

	os.chdir( directory )

	environment = os.environ.copy()
	for k, v in config.get( "environment", {} ).items() :
		environment[k] = os.path.expandvars( v )

	for command in config["commands"] :
		sys.stderr.write( command + "\n" )
		try :
			subprocess.check_call( command, shell = True, env = environment )
		except subprocess.CalledProcessError as e :
			raise BuildError( command, e.returncode ) from e

def provision( config ) :

	archives = [ fetch( download ) for download in config["downloads"] ]
	directories = [ extract( a ) for a in archives ]
	buildAndInstall( directories[0], config )

def main( args = None ) :

	parser = argparse.ArgumentParser(
		description = "Downloads, builds and installs libsodium into the system-wide prefix."
	)
	parser.parse_args( args )

	try :
		config = loadConfig( "LibSodium" )
		provision( config )
	except ProvisionError as e :
		sys.stderr.write( "{}\n".format( e ) )
		return e.exitStatus

	sys.stderr.write( "Installed {}\n".format( os.path.basename( config["downloads"][0] ) ) )
	return 0

if __name__ == "__main__" :
	sys.exit( main() )
