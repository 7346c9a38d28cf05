{

	"downloads" : [

		"https://github.com/jedisct1/libsodium/releases/download/{version}/libsodium-{version}.tar.gz",

	],

	"url" : "https://libsodium.org",

	"variables" : {

		"version" : "1.0.11",

	},

	# Installs into the default `/usr/local` prefix, so
	# the final command usually needs root.
	"commands" : [

		"./configure",
		"make",
		"make install",

	],

}
