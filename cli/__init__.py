"""Console front end for ffnn."""
